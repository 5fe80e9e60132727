"""Relation and scope models for family-scope resolution.

Provides the value types shared by the edge store and the resolver:
- Relation kinds and direction policies
- Directed relation edges and frontier entries
- Validated scope queries and their results
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator

DEFAULT_NODE_CAP = 10000


class RelationKind(str, Enum):
    """Closed set of directed relation kinds between two people."""
    PARENT = "PARENT"
    CHILD = "CHILD"
    SIBLING = "SIBLING"
    SPOUSE = "SPOUSE"

    @property
    def inverse(self) -> RelationKind:
        """Kind of the paired edge stored in the opposite direction."""
        if self is RelationKind.PARENT:
            return RelationKind.CHILD
        if self is RelationKind.CHILD:
            return RelationKind.PARENT
        return self


class DirectionPolicy(str, Enum):
    """Which relation kinds a traversal is allowed to expand."""
    BOTH = "both"
    ANCESTORS = "ancestors"  # follow CHILD edges up to recorded parents
    DESCENDANTS = "descendants"  # follow PARENT edges down to recorded children

    @property
    def allowed_kinds(self) -> frozenset[RelationKind]:
        return _ALLOWED_KINDS[self]


_ALLOWED_KINDS: dict[DirectionPolicy, frozenset[RelationKind]] = {
    DirectionPolicy.BOTH: frozenset(RelationKind),
    DirectionPolicy.ANCESTORS: frozenset({RelationKind.CHILD}),
    DirectionPolicy.DESCENDANTS: frozenset({RelationKind.PARENT}),
}


@dataclass(frozen=True)
class RelationEdge:
    """A directed edge: ``source_id`` is ``kind`` of ``target_id``."""
    source_id: str
    target_id: str
    kind: RelationKind

    def inverted(self) -> RelationEdge:
        return RelationEdge(self.target_id, self.source_id, self.kind.inverse)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "kind": self.kind.value,
        }


@dataclass(frozen=True)
class FrontierEntry:
    """An entity waiting for expansion, tagged with its BFS layer."""
    entity_id: str
    depth: int


class ScopeQuery(BaseModel):
    """Query for a bounded relation-scope traversal."""
    root_id: str
    direction: DirectionPolicy = DirectionPolicy.BOTH
    max_depth: int = 2  # values below 1 return only the root
    include_self: bool = True
    node_cap: int = Field(default=DEFAULT_NODE_CAP, ge=1)

    @field_validator("root_id")
    @classmethod
    def _root_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("root_id must not be empty")
        return value


class ScopeResult(BaseModel):
    """Result of a scope resolution.

    ``members`` is in discovery order, with the root first when included.
    ``truncated`` is set when the node cap, a cancellation or the time
    budget stopped the traversal before the frontier was exhausted.
    """
    root_id: str
    direction: DirectionPolicy
    members: list[str] = Field(default_factory=list)
    truncated: bool = False
    depth_reached: int = 0

    # Query metadata
    rounds: int = 0
    store_calls: int = 0
    query_time_ms: float = 0.0

    @computed_field
    @property
    def member_count(self) -> int:
        return len(self.members)

    def to_response(self) -> dict[str, Any]:
        """External response shape used by callers of the resolver."""
        return {
            "members": list(self.members),
            "truncated": self.truncated,
            "depthReached": self.depth_reached,
        }


class ScopePreview(BaseModel):
    """Size estimate of a scope, without the member list."""
    root_id: str
    direction: DirectionPolicy
    max_depth: int
    estimated_count: int = 0
    truncated: bool = False
    depth_reached: int = 0
