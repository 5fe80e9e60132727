"""Tests for relation and scope models."""
from __future__ import annotations

import pytest

from family_scope.graph import (
    DEFAULT_NODE_CAP,
    DirectionPolicy,
    InvalidArgument,
    RelationEdge,
    RelationKind,
    ScopePreview,
    ScopeQuery,
    ScopeResult,
    build_query,
)


class TestRelationKind:
    """Tests for RelationKind."""

    def test_parent_child_are_inverses(self):
        assert RelationKind.PARENT.inverse == RelationKind.CHILD
        assert RelationKind.CHILD.inverse == RelationKind.PARENT

    def test_lateral_kinds_are_self_inverse(self):
        assert RelationKind.SIBLING.inverse == RelationKind.SIBLING
        assert RelationKind.SPOUSE.inverse == RelationKind.SPOUSE

    def test_values(self):
        assert {k.value for k in RelationKind} == {"PARENT", "CHILD", "SIBLING", "SPOUSE"}


class TestDirectionPolicy:
    """Tests for DirectionPolicy."""

    def test_direction_values(self):
        assert DirectionPolicy.BOTH.value == "both"
        assert DirectionPolicy.ANCESTORS.value == "ancestors"
        assert DirectionPolicy.DESCENDANTS.value == "descendants"

    def test_ancestors_expand_child_edges(self):
        assert DirectionPolicy.ANCESTORS.allowed_kinds == {RelationKind.CHILD}

    def test_descendants_expand_parent_edges(self):
        assert DirectionPolicy.DESCENDANTS.allowed_kinds == {RelationKind.PARENT}

    def test_both_expands_everything(self):
        assert DirectionPolicy.BOTH.allowed_kinds == set(RelationKind)


class TestRelationEdge:
    """Tests for RelationEdge."""

    def test_inverted(self):
        edge = RelationEdge("ravi", "lakshmi", RelationKind.CHILD)
        assert edge.inverted() == RelationEdge("lakshmi", "ravi", RelationKind.PARENT)

    def test_to_dict(self):
        edge = RelationEdge("a", "b", RelationKind.SPOUSE)
        assert edge.to_dict() == {"source_id": "a", "target_id": "b", "kind": "SPOUSE"}


class TestScopeQuery:
    """Tests for ScopeQuery validation."""

    def test_defaults(self):
        query = ScopeQuery(root_id="r")
        assert query.direction == DirectionPolicy.BOTH
        assert query.include_self is True
        assert query.node_cap == DEFAULT_NODE_CAP == 10000

    def test_direction_from_string(self):
        assert ScopeQuery(root_id="r", direction="ancestors").direction == DirectionPolicy.ANCESTORS

    def test_zero_depth_is_allowed(self):
        assert ScopeQuery(root_id="r", max_depth=0).max_depth == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"root_id": ""},
            {"root_id": "   "},
            {"root_id": "r", "direction": "sideways"},
            {"root_id": "r", "node_cap": 0},
        ],
    )
    def test_build_query_rejects_bad_input(self, kwargs):
        with pytest.raises(InvalidArgument):
            build_query(**kwargs)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            build_query(root_id="")


class TestScopeResult:
    """Tests for ScopeResult."""

    def test_to_response(self):
        result = ScopeResult(
            root_id="r",
            direction=DirectionPolicy.BOTH,
            members=["r", "s"],
            truncated=True,
            depth_reached=1,
        )
        assert result.to_response() == {
            "members": ["r", "s"],
            "truncated": True,
            "depthReached": 1,
        }
        assert result.member_count == 2

    def test_preview_defaults(self):
        preview = ScopePreview(root_id="r", direction=DirectionPolicy.BOTH, max_depth=2)
        assert preview.estimated_count == 0
        assert preview.truncated is False
