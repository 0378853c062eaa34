"""
alb-reconciler: converge AWS Application Load Balancers to ingress specs.

The controller runs a two-phase cycle:
- Diff: build a tracked entity per managed ingress, carry forward the
  load balancers known for it, and schedule teardown for ingresses that
  disappeared (bootstrapping from live load balancers on the first cycle)
- Converge: run one bounded, failure-isolated task per tracked entity

Example:
    from alb_reconciler import ControllerSettings, IngressController, ManifestSource
    from alb_reconciler.infra import LoadBalancerConverger, LoadBalancerInventory

    settings = ControllerSettings(cluster_name="prod")
    source = ManifestSource(Path("manifests/"))
    async with (
        LoadBalancerInventory() as inventory,
        LoadBalancerConverger("prod") as converger,
    ):
        controller = IngressController(settings, source, source, inventory, converger)
        await controller.sync_once()
"""

from .bootstrap import BootstrapResult, resync
from .builder import ServiceCatalog, build_entity
from .config import ControllerSettings
from .controller import IngressController
from .differ import DiffEngine, DiffResult, compute_next_set
from .dispatcher import DispatchResult, dispatch
from .exceptions import (
    ALBReconcilerError,
    AnnotationError,
    BackendResolutionError,
    BootstrapError,
    ConvergenceError,
    DuplicateIdentityError,
    InfrastructureError,
    InventoryError,
    ManifestError,
    ServiceNotFoundError,
    ServicePortNotFoundError,
    ServiceTypeError,
    SpecError,
    ValidationError,
)
from .identity import identity_of, is_managed
from .manifest import ManifestSource
from .models import (
    BuildResult,
    BuildStatus,
    DesiredState,
    Identity,
    IngressSpec,
    LoadBalancerHandle,
    OrphanedLoadBalancer,
    ServiceSpec,
    TrackedEntity,
)
from .state import TrackedEntityStore

__version__ = "0.1.0"

__all__ = [
    "ALBReconcilerError",
    "AnnotationError",
    "BackendResolutionError",
    "BootstrapError",
    "BootstrapResult",
    "BuildResult",
    "BuildStatus",
    "ControllerSettings",
    "ConvergenceError",
    "DesiredState",
    "DiffEngine",
    "DiffResult",
    "DispatchResult",
    "DuplicateIdentityError",
    "Identity",
    "InfrastructureError",
    "IngressController",
    "IngressSpec",
    "InventoryError",
    "LoadBalancerHandle",
    "ManifestError",
    "ManifestSource",
    "OrphanedLoadBalancer",
    "ServiceCatalog",
    "ServiceNotFoundError",
    "ServicePortNotFoundError",
    "ServiceSpec",
    "ServiceTypeError",
    "SpecError",
    "TrackedEntity",
    "TrackedEntityStore",
    "ValidationError",
    "build_entity",
    "compute_next_set",
    "dispatch",
    "identity_of",
    "is_managed",
    "resync",
]
