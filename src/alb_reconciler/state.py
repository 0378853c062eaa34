"""Process-wide tracked-entity state.

The diff engine is the single writer: it replaces the whole set at the end
of a cycle. The dispatcher and the introspection endpoint only read
snapshots, so they never see a half-built set.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any

from .exceptions import DuplicateIdentityError
from .models import OrphanedLoadBalancer, TrackedEntity


class TrackedEntityStore:
    """
    Holder for the current tracked-entity set.

    The set is ``None`` until the first replacement, which is how the diff
    engine knows to bootstrap. The lock only guards the reference swap, so
    readers never wait on a diff cycle.
    """

    def __init__(self) -> None:
        self._entities: tuple[TrackedEntity, ...] | None = None
        self._orphans: tuple[OrphanedLoadBalancer, ...] = ()
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._entities is not None

    def snapshot(self) -> list[TrackedEntity] | None:
        """Current entities, or ``None`` before the first replacement."""
        with self._lock:
            entities = self._entities
        return list(entities) if entities is not None else None

    def replace(self, entities: Iterable[TrackedEntity]) -> None:
        """
        Swap in a new set.

        Raises:
            DuplicateIdentityError: If two entities share an identity
        """
        new = tuple(entities)
        seen = set()
        for entity in new:
            if entity.identity in seen:
                raise DuplicateIdentityError(str(entity.identity))
            seen.add(entity.identity)
        with self._lock:
            self._entities = new

    def set_orphans(self, orphans: Iterable[OrphanedLoadBalancer]) -> None:
        with self._lock:
            self._orphans = tuple(orphans)

    def __len__(self) -> int:
        return len(self._entities or ())

    def as_dict(self) -> dict[str, Any]:
        """Serialize a consistent snapshot for the introspection endpoint."""
        with self._lock:
            entities = self._entities
            orphans = self._orphans

        items = [entity.to_dict() for entity in entities or ()]
        return {
            "initialized": entities is not None,
            "count": len(items),
            "tainted": sum(1 for item in items if item["tainted"]),
            "pending_deletion": sum(1 for item in items if item["pending_deletion"]),
            "ingresses": items,
            "orphans": [orphan.to_dict() for orphan in orphans],
        }
