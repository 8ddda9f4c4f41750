# vectorkit/middleware/redaction.py
# SPDX-License-Identifier: Apache-2.0
"""
PII redaction for metadata written to the store.

String metadata values on upsert (and update) requests are scrubbed before
they reach the provider. Each match becomes `[REDACTED_<TYPE>]`, where TYPE
is the upper-cased pattern name.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Pattern, Union

from vectorkit.middleware.base import Middleware
from vectorkit.middleware.envelope import Operation, Request
from vectorkit.types import Vector

DEFAULT_PATTERNS: Dict[str, Pattern[str]] = {
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "phone": re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
    "ssn": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    "credit_card": re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
}


class RedactionMiddleware(Middleware):
    name = "redaction"

    def __init__(
        self,
        *,
        patterns: Optional[Mapping[str, Union[str, Pattern[str]]]] = None,
        operations: Iterable[Union[Operation, str]] = (Operation.UPSERT, Operation.UPDATE),
    ) -> None:
        source = DEFAULT_PATTERNS if patterns is None else patterns
        self.patterns: Dict[str, Pattern[str]] = {
            name: re.compile(p) if isinstance(p, str) else p for name, p in source.items()
        }
        self.operations = frozenset(Operation(op) for op in operations)

    def redact(self, text: str) -> str:
        # credit cards before phone numbers so a card is not split into phone matches
        for name in sorted(self.patterns, key=lambda n: n != "credit_card"):
            text = self.patterns[name].sub(f"[REDACTED_{name.upper()}]", text)
        return text

    def redact_metadata(self, metadata: Mapping[str, Any]) -> Dict[str, Any]:
        return {k: self.redact(v) if isinstance(v, str) else v for k, v in metadata.items()}

    def before(self, request: Request) -> None:
        if request.operation not in self.operations:
            return
        params = request.params
        if request.operation is Operation.UPSERT and params.get("vectors"):
            params["vectors"] = [self._redact_vector(v) for v in params["vectors"]]
        elif params.get("metadata"):
            params["metadata"] = self.redact_metadata(params["metadata"])

    def _redact_vector(self, vector: Any) -> Any:
        if isinstance(vector, Vector):
            if not vector.metadata:
                return vector
            return dataclasses.replace(vector, metadata=self.redact_metadata(vector.metadata))
        if isinstance(vector, Mapping) and vector.get("metadata"):
            return {**vector, "metadata": self.redact_metadata(vector["metadata"])}
        return vector


__all__ = ["RedactionMiddleware", "DEFAULT_PATTERNS"]
