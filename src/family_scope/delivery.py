"""Fan-out of a resolved scope to delivery identifiers.

The resolver only knows entity ids. Notification fan-out needs a second
collaborator that maps those ids to delivery identifiers (for example push
tokens); this module defines that contract and the helper that joins both.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import structlog

from .graph.models import ScopeQuery
from .graph.traversal import ScopeResolver

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DeliveryIdentity:
    """Delivery identifier of one entity, ``None`` if it has none."""
    entity_id: str
    delivery_id: str | None = None


@runtime_checkable
class IdentityLookup(Protocol):
    """Maps entity ids to delivery identifiers."""

    async def lookup(self, entity_ids: Sequence[str]) -> list[DeliveryIdentity]:
        """Look up delivery identifiers.

        Args:
            entity_ids: Entities to look up

        Returns:
            One DeliveryIdentity per known entity
        """
        ...


class InMemoryIdentityLookup:
    """Identity lookup over a fixed mapping."""

    def __init__(self, identities: Mapping[str, str | None] | None = None) -> None:
        self.identities = dict(identities or {})
        self.calls: list[list[str]] = []

    async def lookup(self, entity_ids: Sequence[str]) -> list[DeliveryIdentity]:
        if not entity_ids:
            return []
        self.calls.append(list(entity_ids))
        return [
            DeliveryIdentity(entity_id, self.identities[entity_id])
            for entity_id in entity_ids
            if entity_id in self.identities
        ]


@dataclass
class DeliveryTargets:
    """Resolved scope joined with delivery identifiers."""
    members: list[str]
    delivery_ids: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    truncated: bool = False

    @property
    def reachable_count(self) -> int:
        return len(self.delivery_ids)


async def resolve_delivery_targets(
    resolver: ScopeResolver,
    lookup: IdentityLookup,
    query: ScopeQuery,
) -> DeliveryTargets:
    """Resolve a scope and map its members to delivery identifiers.

    Members without a delivery identifier (unknown to the lookup or mapped
    to ``None``) are reported in ``missing``, in member order.
    """
    result = await resolver.resolve(query)
    if not result.members:
        return DeliveryTargets(members=[], truncated=result.truncated)

    found = {
        identity.entity_id: identity.delivery_id
        for identity in await lookup.lookup(result.members)
    }

    delivery_ids: list[str] = []
    missing: list[str] = []
    seen: set[str] = set()
    for member in result.members:
        delivery_id = found.get(member)
        if delivery_id is None:
            missing.append(member)
        elif delivery_id not in seen:
            seen.add(delivery_id)
            delivery_ids.append(delivery_id)

    logger.info(
        "delivery.targets",
        root_id=query.root_id,
        members=len(result.members),
        delivery_ids=len(delivery_ids),
        missing=len(missing),
        truncated=result.truncated,
    )
    return DeliveryTargets(
        members=result.members,
        delivery_ids=delivery_ids,
        missing=missing,
        truncated=result.truncated,
    )
