"""Ingress controller: the diff and convergence loop."""

from __future__ import annotations

import asyncio
import logging

from . import metrics
from .bootstrap import Inventory, resync
from .builder import ServicePortResolver
from .config import ControllerSettings
from .differ import DiffEngine, DiffResult
from .dispatcher import Converger, DispatchResult, dispatch
from .exceptions import BootstrapError
from .manifest import SpecSource
from .models import IngressSpec, TrackedEntity
from .state import TrackedEntityStore

logger = logging.getLogger(__name__)


class IngressController:
    """
    Converges the load balancer fleet to the current ingress specs.

    Each cycle has two phases: :meth:`on_update` diffs the specs against
    the tracked entities and replaces the store; :meth:`reload` dispatches
    convergence for every tracked entity. The first ``on_update`` of a
    process bootstraps the store from the live load balancers.

    Example:
        controller = IngressController(settings, source, source, inventory, converger)
        stop = asyncio.Event()
        await controller.run(stop)
    """

    def __init__(
        self,
        settings: ControllerSettings,
        source: SpecSource,
        resolver: ServicePortResolver,
        inventory: Inventory,
        converger: Converger,
        store: TrackedEntityStore | None = None,
    ) -> None:
        self.settings = settings
        self.source = source
        self.inventory = inventory
        self.converger = converger
        self.store = store or TrackedEntityStore()
        self.engine = DiffEngine(
            ingress_class=settings.ingress_class,
            resolver=resolver,
            bootstrap=self._bootstrap,
        )

    async def _bootstrap(self) -> list[TrackedEntity]:
        result = await resync(
            self.inventory,
            self.settings.cluster_name,
            max_concurrency=self.settings.max_concurrency,
        )
        self.store.set_orphans(result.orphans)
        return result.entities

    async def on_update(self, specs: list[IngressSpec]) -> DiffResult:
        """
        Run one diff cycle and replace the tracked-entity set.

        Raises:
            BootstrapError: If this is the first cycle and bootstrap failed
        """
        metrics.DIFF_CYCLES.inc()
        logger.debug("Update event seen by ALB ingress controller")

        result = await self.engine.diff(self.store.snapshot(), specs)
        self.store.replace(result.entities)

        metrics.MANAGED_INGRESSES.set(len(result.entities))
        metrics.TAINTED_INGRESSES.set(sum(1 for e in result.entities if e.tainted))
        return result

    async def reload(self) -> DispatchResult:
        """Converge every tracked entity."""
        metrics.CONVERGENCE_CYCLES.inc()
        entities = self.store.snapshot() or []

        result = await dispatch(
            entities,
            self.converger,
            max_concurrency=self.settings.max_concurrency,
            converge_timeout=self.settings.converge_timeout,
            deadline=self.settings.dispatch_deadline,
        )

        if result.failed:
            metrics.CONVERGENCE_FAILURES.inc(len(result.failed))
            logger.warning(
                "Converged %d of %d ingresses; failed: %s",
                len(result.succeeded),
                result.total,
                ", ".join(sorted(result.failed)),
            )
        else:
            logger.info("Converged %d ingresses", result.total)
        return result

    async def sync_once(self) -> DispatchResult:
        """List the specs, diff them, and converge."""
        specs = await self.source.list_ingresses()
        await self.on_update(specs)
        return await self.reload()

    async def run(self, stop: asyncio.Event) -> None:
        """
        Reconcile every ``sync_interval`` seconds until ``stop`` is set.

        Raises:
            BootstrapError: Bootstrap failures are fatal
        """
        logger.info(
            "Starting ALB ingress controller for cluster %s (ingress class %r)",
            self.settings.cluster_name,
            self.settings.ingress_class,
        )
        while not stop.is_set():
            try:
                await self.sync_once()
            except BootstrapError:
                raise
            except Exception:
                logger.error("Reconciliation cycle failed; retrying next cycle", exc_info=True)

            try:
                await asyncio.wait_for(stop.wait(), timeout=self.settings.sync_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Shutting down ingress controller")
