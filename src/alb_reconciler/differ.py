"""Diff engine for ingress reconciliation.

Compares the current ingress specs against the previously tracked
entities to produce the next tracked-entity set. The next set is derived
from scratch every cycle, so a missed or repeated notification is
corrected on the following cycle.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .builder import ServicePortResolver, build_entity
from .identity import is_managed
from .models import BuildStatus, Identity, IngressSpec, TrackedEntity

logger = logging.getLogger(__name__)

Bootstrapper = Callable[[], Awaitable[list[TrackedEntity]]]


@dataclass
class DiffResult:
    """Next tracked-entity set plus what happened to each identity."""

    entities: list[TrackedEntity] = field(default_factory=list)
    dropped: list[Identity] = field(default_factory=list)
    tainted: list[Identity] = field(default_factory=list)
    deleting: list[Identity] = field(default_factory=list)
    removed: list[Identity] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "entities": len(self.entities),
            "dropped": [str(i) for i in self.dropped],
            "tainted": [str(i) for i in self.tainted],
            "deleting": [str(i) for i in self.deleting],
            "removed": [str(i) for i in self.removed],
        }


def compute_next_set(
    previous: Iterable[TrackedEntity],
    specs: Iterable[IngressSpec],
    ingress_class: str,
    resolver: ServicePortResolver,
) -> DiffResult:
    """
    Compute the next tracked-entity set.

    Args:
        previous: Entities tracked after the last cycle (or bootstrap).
            Not mutated.
        specs: Complete current list of ingress specs.
        ingress_class: Class filter; empty manages every ingress.
        resolver: Backend port resolver for the builder.

    Returns:
        DiffResult whose ``entities`` contain every built or tainted entity,
        previously tracked entities pending teardown (desired state
        stripped), and tainted entities whose spec disappeared (unchanged).

    A tainted entity is never scheduled for teardown here. When its ingress
    disappears it is carried forward as-is, not dropped, until a later spec
    with the same identity rebuilds it.
    """
    result = DiffResult()
    prior_by_identity = {entity.identity: entity for entity in previous}
    current: set[Identity] = set()

    for spec in specs:
        if not is_managed(spec, ingress_class):
            continue

        built = build_entity(spec, resolver)
        if built.status is BuildStatus.DROPPED or built.entity is None:
            result.dropped.append(built.identity)
            continue

        entity = built.entity
        if entity.identity in current:
            logger.warning("Ignoring repeated ingress %s in spec list", entity.identity)
            continue
        current.add(entity.identity)

        # Last-known cloud state survives a rebuild
        prior = prior_by_identity.get(entity.identity)
        if prior is not None:
            entity.load_balancers = list(prior.load_balancers)

        if built.status is BuildStatus.TAINTED:
            result.tainted.append(entity.identity)
        result.entities.append(entity)

    for identity, prior in prior_by_identity.items():
        if identity in current:
            continue

        # A half-understood ingress is never torn down automatically
        if prior.tainted:
            logger.info("Keeping tainted ingress %s although its spec is gone", identity)
            result.entities.append(prior)
            continue

        if not prior.eligible_for_removal:
            logger.info("Ingress %s was removed; scheduling load balancer deletion", identity)
            deleting = dataclasses.replace(
                prior,
                load_balancers=list(prior.load_balancers),
                errors=list(prior.errors),
            )
            deleting.strip_desired_state()
            result.deleting.append(identity)
            result.entities.append(deleting)
        else:
            result.removed.append(identity)

    return result


class DiffEngine:
    """
    Runs diff cycles, bootstrapping once when there is no prior state.

    Example:
        engine = DiffEngine(ingress_class="alb", resolver=catalog, bootstrap=load)
        result = await engine.diff(None, specs)   # bootstraps
        result = await engine.diff(result.entities, specs)
    """

    def __init__(
        self,
        ingress_class: str,
        resolver: ServicePortResolver,
        bootstrap: Bootstrapper,
    ) -> None:
        self.ingress_class = ingress_class
        self.resolver = resolver
        self.bootstrap = bootstrap

    async def diff(
        self,
        previous: list[TrackedEntity] | None,
        specs: Iterable[IngressSpec],
    ) -> DiffResult:
        """
        Produce the next set; ``previous=None`` means uninitialized.

        Raises:
            BootstrapError: If bootstrapping was needed and failed
        """
        if previous is None:
            previous = await self.bootstrap()

        result = compute_next_set(previous, specs, self.ingress_class, self.resolver)
        logger.debug("Diff cycle complete: %s", result.summary())
        return result
