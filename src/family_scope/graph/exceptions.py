"""Errors raised by the edge store and the scope resolver."""
from __future__ import annotations

from collections.abc import Iterable


class ScopeError(Exception):
    """Base class for family-scope errors."""


class InvalidArgument(ScopeError, ValueError):
    """Raised before any store call when a request cannot be served.

    Callers exposing the resolver over a network should map this to a
    client error.
    """


class StoreUnavailable(ScopeError):
    """Raised when the backing store cannot answer an edge query.

    Callers should treat this as retryable; the resolver itself never
    retries and never returns a partial result when it is raised.
    """

    def __init__(self, message: str, source_ids: Iterable[str] | None = None):
        super().__init__(message)
        self.source_ids = sorted(source_ids or [])
