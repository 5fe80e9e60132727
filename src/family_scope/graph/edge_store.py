"""Edge storage for the family relation graph.

The store is the resolver's only contact with persistence. Every relation
is kept as a pair of directed edges (``A PARENT B`` alongside ``B CHILD A``);
the pair is written by :meth:`EdgeStore.link` and read back edge by edge,
so readers never infer an inverse themselves.

Two implementations are provided:
- ``InMemoryEdgeStore`` for tests and small embedded use
- ``SQLiteEdgeStore`` backed by a ``family_relation`` table
"""
from __future__ import annotations

import asyncio
import sqlite3
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Collection, Iterable, Sequence
from contextlib import contextmanager
from pathlib import Path

import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .exceptions import InvalidArgument, StoreUnavailable
from .models import RelationEdge, RelationKind

logger = structlog.get_logger(__name__)

EdgePair = tuple[str, str]


class EdgeStore(ABC):
    """Abstract base class for relation edge storage."""

    async def fetch_edges(
        self,
        source_ids: Collection[str],
        allowed_kinds: Collection[RelationKind],
    ) -> list[EdgePair]:
        """Get outgoing edges of ``source_ids`` whose kind is allowed.

        Args:
            source_ids: Entities whose outgoing edges are wanted
            allowed_kinds: Relation kinds to include

        Returns:
            ``(source_id, target_id)`` pairs, not deduplicated

        Raises:
            StoreUnavailable: The backing store could not be queried
        """
        if not source_ids or not allowed_kinds:
            return []
        return await self._query_edges(frozenset(source_ids), frozenset(allowed_kinds))

    @abstractmethod
    async def _query_edges(
        self,
        source_ids: frozenset[str],
        allowed_kinds: frozenset[RelationKind],
    ) -> list[EdgePair]:
        """Run the edge query against the backing store."""
        ...

    @abstractmethod
    def link(
        self,
        user_id: str,
        related_user_id: str,
        kind: RelationKind,
    ) -> tuple[RelationEdge, RelationEdge]:
        """Record ``user_id`` as ``kind`` of ``related_user_id``, plus the inverse."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release any held resources."""
        ...

    @staticmethod
    def _paired_edges(
        user_id: str,
        related_user_id: str,
        kind: RelationKind | str,
    ) -> tuple[RelationEdge, RelationEdge]:
        if not user_id or not related_user_id:
            raise InvalidArgument("user_id and related_user_id are required")
        if user_id == related_user_id:
            raise InvalidArgument("cannot relate an entity to itself")
        try:
            kind = RelationKind(kind)
        except ValueError as exc:
            raise InvalidArgument(f"unknown relation kind: {kind!r}") from exc
        edge = RelationEdge(user_id, related_user_id, kind)
        return edge, edge.inverted()


class InMemoryEdgeStore(EdgeStore):
    """Dictionary-backed edge store.

    Records every query in ``calls`` and raises ``fail_with`` from the
    next query when it is set.
    """

    def __init__(self, edges: Iterable[RelationEdge] = ()) -> None:
        self._edges: dict[str, list[RelationEdge]] = defaultdict(list)
        self._keys: set[RelationEdge] = set()
        self.calls: list[tuple[frozenset[str], frozenset[RelationKind]]] = []
        self.fail_with: Exception | None = None
        for edge in edges:
            self.add_edge(edge)

    def add_edge(self, edge: RelationEdge) -> RelationEdge:
        """Store a single directed edge as-is; duplicates are ignored."""
        if edge not in self._keys:
            self._keys.add(edge)
            self._edges[edge.source_id].append(edge)
        return edge

    def link(
        self,
        user_id: str,
        related_user_id: str,
        kind: RelationKind,
    ) -> tuple[RelationEdge, RelationEdge]:
        forward, inverse = self._paired_edges(user_id, related_user_id, kind)
        self.add_edge(forward)
        self.add_edge(inverse)
        return forward, inverse

    @property
    def edge_count(self) -> int:
        return len(self._keys)

    async def _query_edges(
        self,
        source_ids: frozenset[str],
        allowed_kinds: frozenset[RelationKind],
    ) -> list[EdgePair]:
        self.calls.append((source_ids, allowed_kinds))
        if self.fail_with is not None:
            raise StoreUnavailable(str(self.fail_with), source_ids) from self.fail_with

        return [
            (edge.source_id, edge.target_id)
            for source_id in sorted(source_ids)
            for edge in self._edges.get(source_id, ())
            if edge.kind in allowed_kinds
        ]

    def close(self) -> None:
        self._edges.clear()
        self._keys.clear()


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


class SQLiteEdgeStore(EdgeStore):
    """SQLite-backed edge store over a ``family_relation`` table."""

    def __init__(self, db_path: str | Path, busy_timeout_ms: int = 5000) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_schema()
        except (OSError, sqlite3.Error) as exc:
            logger.error("edge_store.unavailable", db_path=str(self.db_path), error=str(exc))
            raise StoreUnavailable(f"cannot open edge store at {self.db_path}: {exc}") from exc

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)};")
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._get_conn() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS family_relation (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    related_user_id TEXT NOT NULL,
                    relation_type TEXT NOT NULL
                        CHECK (relation_type IN ('PARENT', 'CHILD', 'SIBLING', 'SPOUSE')),
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_family_relation_key
                    ON family_relation(user_id, related_user_id, relation_type);
                CREATE INDEX IF NOT EXISTS idx_family_relation_user
                    ON family_relation(user_id);
                CREATE INDEX IF NOT EXISTS idx_family_relation_related
                    ON family_relation(related_user_id);
                """
            )
            conn.commit()

    # --------------------------- Write path ---------------------------

    def link(
        self,
        user_id: str,
        related_user_id: str,
        kind: RelationKind,
    ) -> tuple[RelationEdge, RelationEdge]:
        forward, inverse = self._paired_edges(user_id, related_user_id, kind)
        try:
            self._insert_pair(forward, inverse)
        except sqlite3.Error as exc:
            logger.error("edge_store.unavailable", operation="link", error=str(exc))
            raise StoreUnavailable(f"failed to link relation: {exc}", [user_id]) from exc
        logger.info(
            "edge_store.linked",
            user_id=user_id,
            related_user_id=related_user_id,
            kind=forward.kind.value,
        )
        return forward, inverse

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5) + wait_random(0, 0.05),
        retry=retry_if_exception(_is_locked),
    )
    def _insert_pair(self, forward: RelationEdge, inverse: RelationEdge) -> None:
        with self._get_conn() as conn, conn:
            conn.executemany(
                """
                INSERT OR IGNORE INTO family_relation (user_id, related_user_id, relation_type)
                VALUES (?, ?, ?)
                """,
                [
                    (edge.source_id, edge.target_id, edge.kind.value)
                    for edge in (forward, inverse)
                ],
            )

    # --------------------------- Read path ----------------------------

    async def _query_edges(
        self,
        source_ids: frozenset[str],
        allowed_kinds: frozenset[RelationKind],
    ) -> list[EdgePair]:
        try:
            return await asyncio.to_thread(self._select_edges, sorted(source_ids), sorted(allowed_kinds))
        except sqlite3.Error as exc:
            logger.error(
                "edge_store.unavailable",
                operation="fetch_edges",
                batch_size=len(source_ids),
                error=str(exc),
            )
            raise StoreUnavailable(f"edge query failed: {exc}", source_ids) from exc

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5) + wait_random(0, 0.05),
        retry=retry_if_exception(_is_locked),
    )
    def _select_edges(
        self,
        source_ids: Sequence[str],
        allowed_kinds: Sequence[RelationKind],
    ) -> list[EdgePair]:
        id_marks = ", ".join("?" for _ in source_ids)
        kind_marks = ", ".join("?" for _ in allowed_kinds)
        with self._get_conn() as conn:
            rows = conn.execute(
                f"""
                SELECT user_id, related_user_id FROM family_relation
                WHERE user_id IN ({id_marks}) AND relation_type IN ({kind_marks})
                ORDER BY id
                """,
                [*source_ids, *(kind.value for kind in allowed_kinds)],
            ).fetchall()
        return [(row["user_id"], row["related_user_id"]) for row in rows]

    def count_edges(self) -> int:
        with self._get_conn() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM family_relation").fetchone()
        return row["n"]

    def close(self) -> None:
        # Connections are opened per operation.
        pass
