"""Bootstrap resync: rebuild tracked entities from live load balancers.

Runs once, on the first diff cycle of a process. Each discovered load
balancer is inspected in its own task; results are merged into the shared
entity list under a lock so two load balancers for the same identity end
up on one entity.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from .concurrency import DEFAULT_MAX_CONCURRENCY, concurrency_limit
from .exceptions import BootstrapError, InventoryError
from .models import Identity, LoadBalancerHandle, OrphanedLoadBalancer, TrackedEntity
from .naming import belongs_to_cluster, identity_from_tags

logger = logging.getLogger(__name__)


class Inventory(Protocol):
    async def list_load_balancers(self, cluster_name: str) -> list[LoadBalancerHandle]: ...

    async def get_tags(self, handle: LoadBalancerHandle) -> dict[str, str]: ...


@dataclass
class BootstrapResult:
    """Entities recovered from the cloud plus load balancers with no known owner."""

    entities: list[TrackedEntity] = field(default_factory=list)
    orphans: list[OrphanedLoadBalancer] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entities": [entity.to_dict() for entity in self.entities],
            "orphans": [orphan.to_dict() for orphan in self.orphans],
        }


class _Merger:
    """Single critical section for the read-check-append merge."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._by_identity: dict[Identity, TrackedEntity] = {}
        self.entities: list[TrackedEntity] = []
        self.orphans: list[OrphanedLoadBalancer] = []

    async def add(self, identity: Identity, handle: LoadBalancerHandle) -> None:
        async with self._lock:
            entity = self._by_identity.get(identity)
            if entity is not None:
                logger.warning(
                    "Found duplicate load balancer %s for %s; it will be cleaned up",
                    handle.name,
                    identity,
                )
                entity.load_balancers.append(handle)
                return
            entity = TrackedEntity(identity=identity, load_balancers=[handle])
            self._by_identity[identity] = entity
            self.entities.append(entity)

    async def add_orphan(self, handle: LoadBalancerHandle, reason: str) -> None:
        async with self._lock:
            self.orphans.append(OrphanedLoadBalancer(handle=handle, reason=reason))


async def resync(
    inventory: Inventory,
    cluster_name: str,
    max_concurrency: int | None = DEFAULT_MAX_CONCURRENCY,
) -> BootstrapResult:
    """
    Reconstruct tracked entities from the cluster's live load balancers.

    Bootstrapped entities carry no desired state; the diff engine fills it
    in from the current specs.

    Args:
        inventory: Cloud load balancer inventory
        cluster_name: Cluster whose fleet to recover
        max_concurrency: Cap on concurrent tag lookups (``0``/``None`` = unbounded)

    Returns:
        BootstrapResult with entities sorted by identity and any orphans.

    Raises:
        BootstrapError: If the inventory cannot be read. Continuing with a
            partial view could make live load balancers look orphaned.
    """
    logger.info("Building list of existing ingresses from load balancers in AWS")

    try:
        handles = await inventory.list_load_balancers(cluster_name)
    except InventoryError as e:
        raise BootstrapError(cluster_name, str(e)) from e

    merger = _Merger()
    limit = concurrency_limit(max_concurrency)

    async def inspect(handle: LoadBalancerHandle) -> None:
        async with limit:
            tags = await inventory.get_tags(handle)

        if not belongs_to_cluster(cluster_name, handle.name, tags):
            logger.debug("Skipping %s: not tagged for cluster %s", handle.name, cluster_name)
            return

        identity = identity_from_tags(tags)
        if identity is None:
            logger.warning(
                "Load balancer %s has no owning ingress tags; leaving it alone", handle.name
            )
            await merger.add_orphan(handle, "missing namespace/ingress-name tags")
            return

        await merger.add(identity, handle)

    tasks = [asyncio.create_task(inspect(handle)) for handle in handles]
    try:
        await asyncio.gather(*tasks)
    except InventoryError as e:
        # Remaining lookups are abandoned before the resync fails
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise BootstrapError(cluster_name, str(e)) from e

    # Tasks finish in any order
    merger.entities.sort(key=lambda entity: entity.identity)
    for entity in merger.entities:
        entity.load_balancers.sort(key=lambda h: h.name)
    logger.info(
        "Assembled %d ingresses from %d existing load balancers (%d orphaned)",
        len(merger.entities),
        len(handles),
        len(merger.orphans),
    )
    return BootstrapResult(entities=merger.entities, orphans=merger.orphans)
