# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the vectorkit test suite.

Time-dependent components (circuit breaker, rate limiter, cache) accept an
injectable clock; `FakeClock` lets tests advance time deterministically and
doubles as the limiter's sleep function.
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from vectorkit.client import Client
from vectorkit.config import VectorKitConfig
from vectorkit.errors import ServerError
from vectorkit.providers.memory import MemoryProvider
from vectorkit.runtime import Runtime
from vectorkit.types import Vector


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FlakyProvider(MemoryProvider):
    """
    Memory provider that fails selected operations.

    `failures[op]` is the number of upcoming calls of `op` that raise
    `error_factory()` before calls start succeeding again.
    """

    name = "flaky"

    def __init__(self, *, error_factory=lambda: ServerError("backend exploded", status_code=503)) -> None:
        super().__init__()
        self.failures: Dict[str, int] = {}
        self.calls: Dict[str, int] = {}
        self.error_factory = error_factory

    def _maybe_fail(self, op: str) -> None:
        self.calls[op] = self.calls.get(op, 0) + 1
        remaining = self.failures.get(op, 0)
        if remaining:
            self.failures[op] = remaining - 1
            raise self.error_factory()

    def upsert(self, **kwargs: Any):
        self._maybe_fail("upsert")
        return super().upsert(**kwargs)

    def query(self, **kwargs: Any):
        self._maybe_fail("query")
        return super().query(**kwargs)

    def fetch(self, **kwargs: Any):
        self._maybe_fail("fetch")
        return super().fetch(**kwargs)


def make_vectors(n: int, *, dim: int = 3, prefix: str = "v") -> List[Vector]:
    """Vectors whose similarity to [1, 0, 0] decreases with their index."""
    out = []
    for i in range(n):
        values = [1.0, i / max(n, 1), 0.0][:dim] + [0.0] * max(0, dim - 3)
        out.append(Vector(id=f"{prefix}{i}", values=values, metadata={"i": i}))
    return out


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def runtime(clock) -> Runtime:
    return Runtime(VectorKitConfig(provider="memory"), clock=clock)


@pytest.fixture
def memory() -> MemoryProvider:
    return MemoryProvider()


@pytest.fixture
def client(runtime, memory) -> Client:
    return Client(memory, runtime=runtime)


@pytest.fixture
def flaky() -> FlakyProvider:
    return FlakyProvider()


@pytest.fixture(name="make_vectors")
def make_vectors_fixture():
    return make_vectors
