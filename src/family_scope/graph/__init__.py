"""Relation graph access and bounded scope resolution.

Provides:
- Relation models (kinds, direction policies, edges)
- Edge stores (in-memory and SQLite) maintaining paired inverse edges
- The layered breadth-first scope resolver
"""
from .edge_store import (
    EdgePair,
    EdgeStore,
    InMemoryEdgeStore,
    SQLiteEdgeStore,
)
from .exceptions import (
    InvalidArgument,
    ScopeError,
    StoreUnavailable,
)
from .models import (
    DEFAULT_NODE_CAP,
    DirectionPolicy,
    FrontierEntry,
    RelationEdge,
    RelationKind,
    ScopePreview,
    ScopeQuery,
    ScopeResult,
)
from .traversal import (
    DEFAULT_BATCH_SIZE,
    ResolverState,
    ScopeResolver,
    TraversalState,
    build_query,
    expand_round,
)

__all__ = [
    # Edge stores
    "EdgePair",
    "EdgeStore",
    "InMemoryEdgeStore",
    "SQLiteEdgeStore",
    # Errors
    "ScopeError",
    "InvalidArgument",
    "StoreUnavailable",
    # Models
    "DEFAULT_NODE_CAP",
    "RelationKind",
    "DirectionPolicy",
    "RelationEdge",
    "FrontierEntry",
    "ScopeQuery",
    "ScopeResult",
    "ScopePreview",
    # Traversal
    "DEFAULT_BATCH_SIZE",
    "ResolverState",
    "ScopeResolver",
    "TraversalState",
    "build_query",
    "expand_round",
]
