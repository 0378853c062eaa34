"""Convergence dispatcher.

Runs one convergence task per tracked entity and waits for all of them.
A failure in one entity's task is recorded and never affects the others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .concurrency import DEFAULT_MAX_CONCURRENCY, concurrency_limit
from .models import TrackedEntity

logger = logging.getLogger(__name__)

DEFAULT_CONVERGE_TIMEOUT = 300.0


class Converger(Protocol):
    """Makes live cloud resources match one entity; raises on failure."""

    async def converge(self, entity: TrackedEntity) -> None: ...


@dataclass
class DispatchResult:
    """Outcome of one dispatch, keyed by identity string."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def as_dict(self) -> dict[str, Any]:
        return {"succeeded": sorted(self.succeeded), "failed": dict(sorted(self.failed.items()))}


async def dispatch(
    entities: Iterable[TrackedEntity],
    converger: Converger,
    max_concurrency: int | None = DEFAULT_MAX_CONCURRENCY,
    converge_timeout: float | None = DEFAULT_CONVERGE_TIMEOUT,
    deadline: float | None = None,
) -> DispatchResult:
    """
    Converge every entity concurrently and wait for all of them.

    Args:
        entities: Snapshot of the tracked-entity set
        converger: Entity convergence implementation
        max_concurrency: Cap on concurrently converging entities
            (``0``/``None`` = one task per entity, unbounded)
        converge_timeout: Per-entity time limit in seconds
        deadline: Overall time limit in seconds; tasks still running are
            cancelled and recorded as failed

    Returns:
        DispatchResult listing succeeded and failed identities.
    """
    result = DispatchResult()
    limit = concurrency_limit(max_concurrency)

    async def unit(entity: TrackedEntity) -> None:
        key = str(entity.identity)
        try:
            async with limit:
                await asyncio.wait_for(converger.converge(entity), timeout=converge_timeout)
        except asyncio.TimeoutError:
            logger.error("Convergence of %s timed out after %ss", key, converge_timeout)
            result.failed[key] = f"timed out after {converge_timeout}s"
        except Exception as e:
            logger.error("Convergence of %s failed: %s", key, e, exc_info=True)
            result.failed[key] = str(e)
        else:
            result.succeeded.append(key)

    tasks = {str(entity.identity): asyncio.ensure_future(unit(entity)) for entity in entities}
    if not tasks:
        return result

    _, pending = await asyncio.wait(tasks.values(), timeout=deadline)
    if pending:
        logger.error(
            "Dispatch deadline of %ss exceeded; cancelling %d convergence tasks",
            deadline,
            len(pending),
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for key, task in tasks.items():
            if task in pending and key not in result.failed:
                result.failed[key] = "dispatch deadline exceeded"

    return result
