"""Bounded relation-scope traversal.

Breadth-first expansion from a root entity over the directed relation
graph, one layer per round:
- the direction policy decides which relation kinds are requested
- each round's frontier is fetched in fixed-size batches
- a per-call visited set keeps cyclic SPOUSE/SIBLING edges from looping
- the node cap is checked on every newly discovered entity

Works with any EdgeStore.
"""
from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

import structlog
from pydantic import ValidationError

from .edge_store import EdgePair, EdgeStore
from .exceptions import InvalidArgument
from .models import (
    DEFAULT_NODE_CAP,
    DirectionPolicy,
    FrontierEntry,
    RelationKind,
    ScopePreview,
    ScopeQuery,
    ScopeResult,
)

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 50


class ResolverState(str, Enum):
    """Lifecycle of a single resolution call."""
    INITIALIZED = "initialized"
    EXPANDING = "expanding"
    DONE = "done"


@dataclass
class TraversalState:
    """Bookkeeping owned by exactly one resolution call."""
    max_depth: int
    node_cap: int
    visited: set[str] = field(default_factory=set)
    members: list[str] = field(default_factory=list)
    depth_reached: int = 0
    truncated: bool = False
    phase: ResolverState = ResolverState.INITIALIZED
    rounds: int = 0
    store_calls: int = 0

    def admit(self, entity_id: str, depth: int) -> bool:
        """Add a newly discovered entity. Returns False once the cap is hit."""
        self.visited.add(entity_id)
        self.members.append(entity_id)
        self.depth_reached = max(self.depth_reached, depth)
        if len(self.members) >= self.node_cap:
            self.truncated = True
            return False
        return True


def expand_round(
    frontier: Sequence[FrontierEntry],
    edges: Iterable[EdgePair],
    state: TraversalState,
) -> list[FrontierEntry]:
    """Apply one batch of fetched edges to the traversal.

    Args:
        frontier: Entries whose outgoing edges were fetched
        edges: ``(source_id, target_id)`` pairs returned for them
        state: Traversal bookkeeping, updated in place

    Returns:
        Newly discovered entries for the next round. Empty once the node
        cap has been reached.
    """
    if state.truncated:
        return []

    depth_by_id = {entry.entity_id: entry.depth for entry in frontier}
    discovered: list[FrontierEntry] = []

    for source_id, target_id in edges:
        depth = depth_by_id.get(source_id)
        if depth is None:
            continue
        next_depth = depth + 1
        if next_depth > state.max_depth or target_id in state.visited:
            continue
        if not state.admit(target_id, next_depth):
            break
        # Entries at the depth limit have nothing left to expand.
        if next_depth < state.max_depth:
            discovered.append(FrontierEntry(target_id, next_depth))

    return discovered


def _batches(frontier: Sequence[FrontierEntry], size: int) -> list[Sequence[FrontierEntry]]:
    return [frontier[i:i + size] for i in range(0, len(frontier), size)]


class ScopeResolver:
    """Resolve the set of entities reachable from a root.

    Example:
        >>> resolver = ScopeResolver(SQLiteEdgeStore("family.db"))
        >>> result = await resolver.resolve_scope("user-1", "ancestors", max_depth=2)
        >>> result.members, result.truncated, result.depth_reached
    """

    def __init__(
        self,
        store: EdgeStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_concurrent_batches: int = 1,
        timeout: float | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Edge store to query
            batch_size: Maximum number of source ids per store call
            max_concurrent_batches: Batches of one round fetched at once
            timeout: Default wall-clock budget per call, in seconds
        """
        if batch_size < 1:
            raise InvalidArgument("batch_size must be at least 1")
        if max_concurrent_batches < 1:
            raise InvalidArgument("max_concurrent_batches must be at least 1")
        self.store = store
        self.batch_size = batch_size
        self.max_concurrent_batches = max_concurrent_batches
        self.timeout = timeout

    async def resolve_scope(
        self,
        root_id: str,
        direction: DirectionPolicy | str = DirectionPolicy.BOTH,
        max_depth: int = 2,
        include_self: bool = True,
        node_cap: int = DEFAULT_NODE_CAP,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> ScopeResult:
        """Validate arguments and resolve the scope of ``root_id``.

        Raises:
            InvalidArgument: Empty root id, unknown direction or bad cap
            StoreUnavailable: A store call failed
        """
        query = build_query(
            root_id=root_id,
            direction=direction,
            max_depth=max_depth,
            include_self=include_self,
            node_cap=node_cap,
        )
        return await self.resolve(query, cancel_event=cancel_event, timeout=timeout)

    async def resolve(
        self,
        query: ScopeQuery,
        *,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> ScopeResult:
        """Run the layered traversal for an already validated query."""
        start_time = time.time()
        budget = timeout if timeout is not None else self.timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget if budget is not None else None

        state = TraversalState(max_depth=query.max_depth, node_cap=query.node_cap)
        log = logger.bind(root_id=query.root_id, direction=query.direction.value)
        log.debug("scope.resolve.start", max_depth=query.max_depth, node_cap=query.node_cap)

        # An unlisted root stays discoverable through inverse edges.
        if query.include_self:
            state.visited.add(query.root_id)
            state.members.append(query.root_id)

        frontier: list[FrontierEntry] = []
        if query.max_depth >= 1:
            if len(state.members) >= query.node_cap:
                state.truncated = True
            else:
                frontier.append(FrontierEntry(query.root_id, 0))

        kinds = query.direction.allowed_kinds
        state.phase = ResolverState.EXPANDING

        while frontier:
            if cancel_event is not None and cancel_event.is_set():
                state.truncated = True
                log.info("scope.cancelled", rounds=state.rounds, members=len(state.members))
                break

            remaining = deadline - loop.time() if deadline is not None else None
            if remaining is not None and remaining <= 0:
                state.truncated = True
                log.warning("scope.timeout", rounds=state.rounds, members=len(state.members))
                break

            state.rounds += 1
            try:
                if remaining is None:
                    frontier = await self._run_round(frontier, kinds, state)
                else:
                    frontier = await asyncio.wait_for(
                        self._run_round(frontier, kinds, state), remaining
                    )
            except TimeoutError:
                state.truncated = True
                log.warning("scope.timeout", rounds=state.rounds, members=len(state.members))
                break

            log.debug(
                "scope.round",
                round=state.rounds,
                discovered=len(frontier),
                members=len(state.members),
            )
            if state.truncated:
                log.info("scope.truncated", node_cap=query.node_cap, rounds=state.rounds)
                break

        state.phase = ResolverState.DONE
        result = ScopeResult(
            root_id=query.root_id,
            direction=query.direction,
            members=state.members,
            truncated=state.truncated,
            depth_reached=state.depth_reached,
            rounds=state.rounds,
            store_calls=state.store_calls,
            query_time_ms=(time.time() - start_time) * 1000,
        )
        log.info(
            "scope.resolve.done",
            members=result.member_count,
            truncated=result.truncated,
            depth_reached=result.depth_reached,
            store_calls=result.store_calls,
        )
        return result

    async def preview(
        self,
        root_id: str,
        direction: DirectionPolicy | str = DirectionPolicy.BOTH,
        max_depth: int = 2,
        node_cap: int = DEFAULT_NODE_CAP,
    ) -> ScopePreview:
        """Estimate the size of a scope that includes the root."""
        result = await self.resolve_scope(
            root_id,
            direction,
            max_depth=max_depth,
            include_self=True,
            node_cap=node_cap,
        )
        return ScopePreview(
            root_id=result.root_id,
            direction=result.direction,
            max_depth=max_depth,
            estimated_count=result.member_count,
            truncated=result.truncated,
            depth_reached=result.depth_reached,
        )

    async def _run_round(
        self,
        frontier: Sequence[FrontierEntry],
        kinds: frozenset[RelationKind],
        state: TraversalState,
    ) -> list[FrontierEntry]:
        """Fetch and apply every batch of one layer."""
        next_frontier: list[FrontierEntry] = []
        batches = _batches(frontier, self.batch_size)

        for start in range(0, len(batches), self.max_concurrent_batches):
            wave = batches[start:start + self.max_concurrent_batches]
            state.store_calls += len(wave)
            results = await asyncio.gather(
                *(
                    self.store.fetch_edges({entry.entity_id for entry in batch}, kinds)
                    for batch in wave
                )
            )
            for batch, edges in zip(wave, results):
                next_frontier.extend(expand_round(batch, edges, state))
                if state.truncated:
                    return next_frontier

        return next_frontier


def build_query(
    root_id: str,
    direction: DirectionPolicy | str = DirectionPolicy.BOTH,
    max_depth: int = 2,
    include_self: bool = True,
    node_cap: int = DEFAULT_NODE_CAP,
) -> ScopeQuery:
    """Build a ScopeQuery, reporting bad input as InvalidArgument."""
    try:
        return ScopeQuery(
            root_id=root_id,
            direction=direction,
            max_depth=max_depth,
            include_self=include_self,
            node_cap=node_cap,
        )
    except ValidationError as exc:
        raise InvalidArgument(str(exc)) from exc
