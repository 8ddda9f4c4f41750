# vectorkit/config.py
# SPDX-License-Identifier: Apache-2.0
"""
Runtime configuration.

`VectorKitConfig` is a plain dataclass. Values come from keyword
arguments or from environment variables via `VectorKitConfig.from_env()`:

    VECTORKIT_PROVIDER=pinecone
    VECTORKIT_API_KEY=...
    VECTORKIT_ENVIRONMENT=us-east-1
    VECTORKIT_CACHE_ENABLED=true

`validate()` checks provider-specific requirements and raises
`ConfigurationError`.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from vectorkit.errors import ConfigurationError, UnsupportedProviderError

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("memory", "pinecone", "pgvector")

# Providers that work without an API key.
API_KEY_OPTIONAL = frozenset({"memory", "pgvector"})

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class VectorKitConfig:
    provider: Optional[str] = None
    api_key: Optional[str] = None
    environment: Optional[str] = None
    host: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    pool_size: int = 5
    pool_timeout: float = 5.0
    batch_size: int = 100
    cache_enabled: bool = False
    cache_ttl: float = 300.0
    cache_max_size: int = 1000
    async_concurrency: int = 4
    instrumentation: bool = False

    def __post_init__(self) -> None:
        if self.provider is not None:
            self.provider = str(self.provider).strip().lower()
            if self.provider not in SUPPORTED_PROVIDERS:
                raise UnsupportedProviderError(
                    f"provider '{self.provider}' is not supported; "
                    f"supported providers: {', '.join(SUPPORTED_PROVIDERS)}",
                    details={"provider": self.provider},
                )

    @classmethod
    def from_env(
        cls,
        prefix: str = "VECTORKIT_",
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "VectorKitConfig":
        """Build a config from `<prefix><FIELD>` environment variables."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            raw = env.get(prefix + f.name.upper())
            if raw is None:
                continue
            kind = type(f.default)
            try:
                if kind is bool:
                    values[f.name] = _parse_bool(prefix + f.name.upper(), raw)
                elif kind is int:
                    values[f.name] = int(raw)
                elif kind is float:
                    values[f.name] = float(raw)
                else:
                    values[f.name] = raw or None
            except ValueError as exc:
                raise ConfigurationError(
                    f"invalid value for {prefix + f.name.upper()}: {raw!r}"
                ) from exc
        values.update(overrides)
        return cls(**values)

    def validate(self) -> "VectorKitConfig":
        if self.provider is None:
            raise ConfigurationError("provider must be configured")
        if self.provider not in API_KEY_OPTIONAL and not self.api_key:
            raise ConfigurationError(f"API key must be configured for {self.provider}")
        if self.provider == "pinecone" and not (self.environment or self.host):
            raise ConfigurationError("pinecone requires either 'environment' or 'host'")
        if self.provider == "pgvector" and not self.host:
            raise ConfigurationError("pgvector requires 'host' (a connection URL)")
        for name in ("pool_size", "batch_size", "cache_max_size", "async_concurrency"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")
        return self

    @property
    def valid(self) -> bool:
        try:
            self.validate()
        except ConfigurationError:
            return False
        return True

    def replace(self, **overrides: Any) -> "VectorKitConfig":
        return dataclasses.replace(self, **overrides)

    def asdict(self) -> Dict[str, Any]:
        out = dataclasses.asdict(self)
        if out.get("api_key"):
            out["api_key"] = "***"
        return out


__all__ = ["VectorKitConfig", "SUPPORTED_PROVIDERS"]
