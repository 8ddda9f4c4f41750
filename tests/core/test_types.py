# SPDX-License-Identifier: Apache-2.0
"""
Core — Vector, Match and QueryResult shapes.
"""

import pytest

from vectorkit.errors import ValidationError
from vectorkit.types import Match, QueryResult, Vector


def test_vector_coerce_accepts_mappings():
    """Verify mappings with id/values/metadata coerce into Vector."""
    v = Vector.coerce({"id": 7, "values": [1, 2.5], "metadata": {"k": "v"}})
    assert v.id == "7"
    assert v.values == [1.0, 2.5]
    assert v.metadata == {"k": "v"}
    assert v.dimension == 2
    assert Vector.coerce(v) is v


@pytest.mark.parametrize(
    "obj",
    [
        {"values": [1.0]},
        {"id": "a"},
        {"id": "a", "values": "not-a-list"},
        {"id": "a", "values": [1.0, "x"]},
        42,
    ],
)
def test_vector_coerce_rejects_malformed_input(obj):
    """Verify malformed vectors raise ValidationError."""
    with pytest.raises(ValidationError):
        Vector.coerce(obj)


def test_vector_to_dict_omits_missing_metadata():
    """Verify to_dict only includes metadata when present."""
    assert Vector(id="a", values=[0.1]).to_dict() == {"id": "a", "values": [0.1]}
    assert Vector(id="a", values=[0.1], metadata={"x": 1}).to_dict()["metadata"] == {"x": 1}


def test_query_result_helpers():
    """Verify iteration, indexing and score helpers on QueryResult."""
    result = QueryResult(
        matches=[Match(id="a", score=0.9), Match(id="b", score=0.5), Match(id="c", score=0.1)],
        namespace="ns",
    )
    assert len(result) == 3
    assert [m.id for m in result] == ["a", "b", "c"]
    assert result[1].id == "b"
    assert result.ids == ["a", "b", "c"]
    assert result.max_score == 0.9
    assert result.min_score == 0.1

    filtered = result.above_score(0.5)
    assert filtered.ids == ["a", "b"]
    assert filtered.namespace == "ns"

    data = result.to_dict()
    assert data["namespace"] == "ns"
    assert data["matches"][0] == {"id": "a", "score": 0.9}


def test_empty_query_result_has_no_scores():
    """Verify score helpers return None for an empty result."""
    result = QueryResult()
    assert len(result) == 0
    assert result.max_score is None
    assert result.min_score is None
