# vectorkit/types.py
# SPDX-License-Identifier: Apache-2.0
"""
Core data shapes shared by the client, providers and bulk helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, NewType, Optional, Union

from vectorkit.errors import ValidationError

VectorID = NewType("VectorID", str)
"""Type alias for vector identifiers providing explicit type safety."""


@dataclass(frozen=True)
class Vector:
    """
    A vector with an identifier and optional metadata.

    Attributes:
        id: Unique identifier for the vector
        values: The embedding as a list of floats
        metadata: Optional key-value pairs for filtering and retrieval
    """
    id: VectorID
    values: List[float]
    metadata: Optional[Dict[str, Any]] = None

    @property
    def dimension(self) -> int:
        return len(self.values)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "values": list(self.values)}
        if self.metadata is not None:
            out["metadata"] = dict(self.metadata)
        return out

    @classmethod
    def coerce(cls, obj: Union["Vector", Mapping[str, Any]]) -> "Vector":
        """Accept a Vector or a mapping with `id`, `values` and optional `metadata`."""
        if isinstance(obj, Vector):
            return obj
        if not isinstance(obj, Mapping):
            raise ValidationError("vector must be a Vector or a mapping")
        if "id" not in obj or "values" not in obj:
            raise ValidationError("vector mapping requires 'id' and 'values'")
        values = obj["values"]
        if not isinstance(values, (list, tuple)) or not all(
            isinstance(x, (int, float)) for x in values
        ):
            raise ValidationError("vector values must be a list of numbers")
        metadata = obj.get("metadata")
        return cls(
            id=VectorID(str(obj["id"])),
            values=[float(x) for x in values],
            metadata=dict(metadata) if metadata is not None else None,
        )


@dataclass(frozen=True)
class Match:
    """
    A single similarity match.

    `values` and `metadata` are populated only when the query asked for them.
    """
    id: VectorID
    score: float
    values: Optional[List[float]] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "score": self.score}
        if self.values is not None:
            out["values"] = list(self.values)
        if self.metadata is not None:
            out["metadata"] = dict(self.metadata)
        return out


@dataclass(frozen=True)
class QueryResult:
    """Ranked matches returned by a query, best first."""
    matches: List[Match] = field(default_factory=list)
    namespace: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None

    def __iter__(self) -> Iterator[Match]:
        return iter(self.matches)

    def __len__(self) -> int:
        return len(self.matches)

    def __getitem__(self, i: int) -> Match:
        return self.matches[i]

    @property
    def ids(self) -> List[str]:
        return [m.id for m in self.matches]

    @property
    def scores(self) -> List[float]:
        return [m.score for m in self.matches]

    @property
    def max_score(self) -> Optional[float]:
        return max(self.scores) if self.matches else None

    @property
    def min_score(self) -> Optional[float]:
        return min(self.scores) if self.matches else None

    def above_score(self, min_score: float) -> "QueryResult":
        return QueryResult(
            matches=[m for m in self.matches if m.score >= min_score],
            namespace=self.namespace,
            usage=self.usage,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"matches": [m.to_dict() for m in self.matches]}
        if self.namespace is not None:
            out["namespace"] = self.namespace
        if self.usage is not None:
            out["usage"] = dict(self.usage)
        return out


__all__ = ["VectorID", "Vector", "Match", "QueryResult"]
