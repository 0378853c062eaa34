"""Exceptions for alb-reconciler."""

from typing import Any

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class ALBReconcilerError(Exception):
    """
    Base exception for all alb-reconciler errors.

    All exceptions raised by this package inherit from this class,
    allowing callers to catch all controller-specific errors with a single
    except clause.
    """

    pass


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class SpecError(ALBReconcilerError):
    """
    Base exception for declarative spec errors.

    Raised while translating an ingress spec into desired state.
    """

    pass


class InfrastructureError(ALBReconcilerError):
    """
    Base exception for infrastructure-related errors.

    This includes errors raised by the ELBv2 API while listing, creating,
    tagging, or deleting load balancers.
    """

    pass


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ALBReconcilerError):
    """Raised when a name or setting fails validation."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


# ---------------------------------------------------------------------------
# Spec Exceptions
# ---------------------------------------------------------------------------


class AnnotationError(SpecError):
    """Raised when an ingress annotation carries an unusable value."""

    def __init__(self, annotation: str, value: str, reason: str) -> None:
        self.annotation = annotation
        self.value = value
        self.reason = reason
        super().__init__(f"Annotation {annotation}={value!r}: {reason}")


class ManifestError(SpecError):
    """Raised when a manifest document cannot be parsed."""

    pass


class BackendResolutionError(SpecError):
    """
    Base exception for backend service port resolution failures.

    Attributes:
        service_key: ``namespace/name`` of the referenced service
        backend_port: The service port the ingress asked for
    """

    def __init__(self, service_key: str, backend_port: int, message: str) -> None:
        self.service_key = service_key
        self.backend_port = backend_port
        super().__init__(message)


class ServiceNotFoundError(BackendResolutionError):
    """Raised when the referenced service does not exist."""

    def __init__(self, service_key: str, backend_port: int) -> None:
        super().__init__(service_key, backend_port, f"Unable to find the {service_key} service")


class ServiceTypeError(BackendResolutionError):
    """Raised when the referenced service does not expose node ports."""

    def __init__(self, service_key: str, backend_port: int, service_type: str) -> None:
        self.service_type = service_type
        super().__init__(
            service_key,
            backend_port,
            f"{service_key} service is of type {service_type}, not NodePort",
        )


class ServicePortNotFoundError(BackendResolutionError):
    """Raised when the requested port is not declared on the service."""

    def __init__(self, service_key: str, backend_port: int) -> None:
        super().__init__(
            service_key,
            backend_port,
            f"Unable to find port {backend_port} defined in the {service_key} service",
        )


# ---------------------------------------------------------------------------
# Infrastructure Exceptions
# ---------------------------------------------------------------------------


class InventoryError(InfrastructureError):
    """
    Raised when the load balancer inventory cannot be read.

    Attributes:
        target: Cluster name for listing, load balancer name for tag reads
        reason: Underlying API error
    """

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Inventory lookup failed for {target}: {reason}")


class BootstrapError(InfrastructureError):
    """
    Raised when the tracked-entity set cannot be rebuilt from the cloud.

    This is fatal: continuing with an empty view would make every live
    load balancer look orphaned.
    """

    def __init__(self, cluster_name: str, reason: str) -> None:
        self.cluster_name = cluster_name
        self.reason = reason
        super().__init__(f"Bootstrap resync failed for cluster {cluster_name}: {reason}")


class ConvergenceError(InfrastructureError):
    """Raised when one entity's load balancers cannot be converged."""

    def __init__(self, identity: str, reason: str) -> None:
        self.identity = identity
        self.reason = reason
        super().__init__(f"Convergence failed for {identity}: {reason}")


# ---------------------------------------------------------------------------
# State Exceptions
# ---------------------------------------------------------------------------


class DuplicateIdentityError(ALBReconcilerError):
    """Raised when a tracked-entity set holds the same identity twice."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(f"Duplicate identity in tracked-entity set: {identity}")
