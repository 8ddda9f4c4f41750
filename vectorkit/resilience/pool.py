# vectorkit/resilience/pool.py
# SPDX-License-Identifier: Apache-2.0
"""
Bounded connection pool.

Connections are created lazily by a factory up to `size`. A checkout takes
an idle connection, creates one if capacity allows, or waits for a checkin
until `timeout` elapses. Waiters are served in arrival order.

On checkin an optional health probe runs; connections that fail it are
closed and their capacity is released for recreation.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional

from vectorkit.errors import ConfigurationError, PoolShutdownError, PoolTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class PooledConnection:
    """Pool bookkeeping around a raw connection handle."""
    raw: Any
    created_at: float = field(default_factory=time.monotonic)
    last_checked_at: Optional[float] = None
    in_use: bool = False


class ConnectionPool:
    """
    Example:
        pool = ConnectionPool(lambda: psycopg.connect(dsn), size=5, timeout=5)
        pool.warmup(2)
        with pool.connection() as conn:
            conn.execute("SELECT 1")
    """

    def __init__(
        self,
        factory: Callable[[], Any],
        *,
        size: int = 5,
        timeout: float = 5.0,
        health_check: Optional[Callable[[Any], bool]] = None,
        close: Optional[Callable[[Any], None]] = None,
    ) -> None:
        if size < 1:
            raise ConfigurationError("pool size must be at least 1")
        self.size = int(size)
        self.timeout = float(timeout)
        self._factory = factory
        self._health_check = health_check
        self._close = close

        self._cond = threading.Condition(threading.Lock())
        self._idle: Deque[PooledConnection] = deque()
        self._checked_out: Dict[int, PooledConnection] = {}
        self._creating = 0
        self._checking = 0
        self._waiters: Deque[object] = deque()
        self._shutdown = False

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _total(self) -> int:
        return len(self._idle) + len(self._checked_out) + self._creating + self._checking

    def _create(self) -> PooledConnection:
        try:
            raw = self._factory()
        except Exception as exc:
            logger.error("failed to create pooled connection: %s", exc)
            raise
        return PooledConnection(raw=raw)

    def _close_raw(self, raw: Any) -> None:
        try:
            if self._close is not None:
                self._close(raw)
            elif hasattr(raw, "close"):
                raw.close()
        except Exception as exc:  # noqa: BLE001
            logger.warning("error closing pooled connection: %s", exc)

    def warmup(self, count: Optional[int] = None) -> int:
        """Eagerly create up to `count` idle connections (default: fill the pool)."""
        target = self.size if count is None else min(int(count), self.size)
        created = 0
        while True:
            with self._cond:
                if self._shutdown:
                    raise PoolShutdownError("connection pool is shut down")
                if created >= target or self._total() >= self.size:
                    break
                self._creating += 1
            try:
                conn = self._create()
            finally:
                with self._cond:
                    self._creating -= 1
            with self._cond:
                self._idle.append(conn)
                self._cond.notify_all()
            created += 1
        logger.debug("pool warmed up with %d connections", created)
        return created

    def shutdown(self) -> None:
        """Close idle and checked-out connections; further checkouts fail."""
        with self._cond:
            self._shutdown = True
            doomed: List[PooledConnection] = list(self._idle) + list(self._checked_out.values())
            self._idle.clear()
            self._checked_out.clear()
            self._cond.notify_all()
        for conn in doomed:
            self._close_raw(conn.raw)
        logger.info("connection pool shut down (%d connections closed)", len(doomed))

    @property
    def is_shutdown(self) -> bool:
        with self._cond:
            return self._shutdown

    # ------------------------------------------------------------------ #
    # Checkout / checkin
    # ------------------------------------------------------------------ #

    def checkout(self, timeout: Optional[float] = None) -> Any:
        """
        Return a raw connection.

        Raises:
            PoolTimeoutError: no connection became available within `timeout`.
            PoolShutdownError: the pool has been shut down.
        """
        timeout = self.timeout if timeout is None else float(timeout)
        deadline = time.monotonic() + timeout
        ticket = object()

        with self._cond:
            self._waiters.append(ticket)
            try:
                while True:
                    if self._shutdown:
                        raise PoolShutdownError("connection pool is shut down")
                    if self._waiters[0] is ticket:
                        if self._idle:
                            conn = self._idle.popleft()
                            break
                        if self._total() < self.size:
                            conn = None
                            self._creating += 1
                            break
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise PoolTimeoutError(
                            f"no connection available within {timeout:.2f}s",
                            details={"size": self.size, "checked_out": len(self._checked_out)},
                        )
                    self._cond.wait(remaining)
            finally:
                self._waiters.remove(ticket)
                self._cond.notify_all()

            if conn is not None:
                self._lease(conn)
                return conn.raw

        try:
            conn = self._create()
        except Exception:
            with self._cond:
                self._creating -= 1
                self._cond.notify_all()
            raise
        with self._cond:
            self._creating -= 1
            if self._shutdown:
                self._close_raw(conn.raw)
                raise PoolShutdownError("connection pool is shut down")
            self._lease(conn)
        return conn.raw

    def _lease(self, conn: PooledConnection) -> None:
        conn.in_use = True
        self._checked_out[id(conn.raw)] = conn

    def checkin(self, raw: Any) -> None:
        """Return a connection; unhealthy connections are closed and discarded."""
        with self._cond:
            conn = self._checked_out.pop(id(raw), None)
            shut = self._shutdown
            if conn is not None:
                # still counted against capacity until the probe settles
                self._checking += 1
        if conn is None:
            if not shut:
                logger.warning("checkin of a connection not owned by this pool")
            return
        conn.in_use = False

        healthy = True
        if self._health_check is not None:
            try:
                healthy = bool(self._health_check(raw))
            except Exception as exc:  # noqa: BLE001
                logger.warning("pooled connection failed health check: %s", exc)
                healthy = False
            conn.last_checked_at = time.monotonic()

        with self._cond:
            self._checking -= 1
            if healthy and not self._shutdown:
                self._idle.append(conn)
                conn = None
            self._cond.notify_all()
        if conn is not None:
            self._close_raw(conn.raw)

    @contextmanager
    def connection(self, timeout: Optional[float] = None) -> Iterator[Any]:
        raw = self.checkout(timeout)
        try:
            yield raw
        finally:
            self.checkin(raw)

    def with_connection(self, fn: Callable[[Any], Any], timeout: Optional[float] = None) -> Any:
        with self.connection(timeout) as raw:
            return fn(raw)

    async def checkout_async(self, timeout: Optional[float] = None) -> Any:
        """Awaitable variant of `checkout`; the wait happens on a worker thread."""
        return await asyncio.to_thread(self.checkout, timeout)

    async def checkin_async(self, raw: Any) -> None:
        await asyncio.to_thread(self.checkin, raw)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def stats(self) -> Dict[str, Any]:
        with self._cond:
            return {
                "size": self.size,
                "available": len(self._idle),
                "checked_out": len(self._checked_out),
                "checking": self._checking,
                "total": len(self._idle) + len(self._checked_out) + self._checking,
                "waiting": len(self._waiters),
                "shutdown": self._shutdown,
            }


__all__ = ["PooledConnection", "ConnectionPool"]
