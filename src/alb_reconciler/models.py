"""Core models for alb-reconciler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True, order=True)
class Identity:
    """
    Stable key for a tracked entity.

    Derived from the ingress namespace and name, so the same ingress maps
    to the same identity across cycles and across restarts.
    """

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, key: str) -> Identity:
        """Parse a ``namespace/name`` key."""
        namespace, sep, name = key.partition("/")
        if not sep or not namespace or not name or "/" in name:
            raise ValueError(f"Identity key must be 'namespace/name', got {key!r}")
        return cls(namespace=namespace, name=name)


# ---------------------------------------------------------------------------
# Declarative specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Backend:
    """Reference from an ingress path to a service port."""

    service_name: str
    service_port: int


@dataclass(frozen=True)
class IngressPath:
    path: str | None
    backend: Backend


@dataclass(frozen=True)
class IngressRule:
    host: str | None
    paths: tuple[IngressPath, ...] = ()


@dataclass(frozen=True)
class IngressSpec:
    """
    Operator-authored routing intent for one ingress.

    Attributes:
        namespace: Kubernetes namespace of the ingress
        name: Ingress name
        annotations: Raw annotations (class filter and load balancer settings)
        rules: Host/path routing rules
        default_backend: Backend used when no rule matches
    """

    namespace: str
    name: str
    annotations: dict[str, str] = field(default_factory=dict)
    rules: tuple[IngressRule, ...] = ()
    default_backend: Backend | None = None


@dataclass(frozen=True)
class ServicePort:
    port: int
    node_port: int | None = None


@dataclass(frozen=True)
class ServiceSpec:
    """A backend service as seen by the port resolver."""

    namespace: str
    name: str
    type: str = "ClusterIP"
    ports: tuple[ServicePort, ...] = ()

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


# ---------------------------------------------------------------------------
# Desired state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoutingRule:
    """
    One host/path route resolved down to a node port.

    ``node_port`` is ``None`` when the backend could not be resolved; the
    owning entity is tainted in that case.
    """

    host: str | None
    path: str | None
    service_key: str
    service_port: int
    node_port: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "path": self.path,
            "service": self.service_key,
            "service_port": self.service_port,
            "node_port": self.node_port,
        }


@dataclass(frozen=True)
class DesiredState:
    """
    Snapshot of an ingress's load balancer configuration intent.

    Attributes:
        scheme: ``internal`` or ``internet-facing``
        subnets: Subnet IDs to attach the load balancer to
        security_groups: Security group IDs
        tags: Extra tags requested by the ingress
        listen_ports: Listener ports
        ingress_class: Value of the class annotation (may be empty)
        rules: Routing rules, default backend first
    """

    scheme: str = "internal"
    subnets: tuple[str, ...] = ()
    security_groups: tuple[str, ...] = ()
    tags: tuple[tuple[str, str], ...] = ()
    listen_ports: tuple[int, ...] = (80,)
    ingress_class: str = ""
    rules: tuple[RoutingRule, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "scheme": self.scheme,
            "subnets": list(self.subnets),
            "security_groups": list(self.security_groups),
            "tags": dict(self.tags),
            "listen_ports": list(self.listen_ports),
            "ingress_class": self.ingress_class,
            "rules": [rule.to_dict() for rule in self.rules],
        }


# ---------------------------------------------------------------------------
# Tracked entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadBalancerHandle:
    """A cloud load balancer believed to exist."""

    arn: str
    name: str
    dns_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"arn": self.arn, "name": self.name, "dns_name": self.dns_name}


@dataclass
class TrackedEntity:
    """
    In-memory record of one ingress's desired and last-known state.

    Attributes:
        identity: Stable key derived from namespace/name
        desired_state: Intent as of the last build; ``None`` once stripped
            for teardown or when only known from bootstrap
        load_balancers: Handles currently believed to exist, normally one
        tainted: Desired-state derivation partially failed
        errors: Reasons recorded when the entity was tainted
    """

    identity: Identity
    desired_state: DesiredState | None = None
    load_balancers: list[LoadBalancerHandle] = field(default_factory=list)
    tainted: bool = False
    errors: list[str] = field(default_factory=list)

    def strip_desired_state(self) -> None:
        """Clear desired state so convergence tears the load balancers down."""
        self.desired_state = None

    @property
    def pending_deletion(self) -> bool:
        return self.desired_state is None and not self.tainted

    @property
    def eligible_for_removal(self) -> bool:
        """True when no cloud state remains and nothing is left to do."""
        return not self.load_balancers and not self.tainted

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": str(self.identity),
            "desired_state": self.desired_state.to_dict() if self.desired_state else None,
            "load_balancers": [lb.to_dict() for lb in self.load_balancers],
            "tainted": self.tainted,
            "pending_deletion": self.pending_deletion,
            "errors": list(self.errors),
        }


class BuildStatus(Enum):
    """Outcome of translating one ingress spec."""

    DROPPED = "dropped"
    TAINTED = "tainted"
    BUILT = "built"


@dataclass(frozen=True)
class BuildResult:
    """
    Tagged result of the desired-state builder.

    ``entity`` is ``None`` only for ``DROPPED``.
    """

    status: BuildStatus
    identity: Identity
    entity: TrackedEntity | None = None
    reasons: tuple[str, ...] = ()

    @classmethod
    def dropped(cls, identity: Identity, reason: str) -> BuildResult:
        return cls(status=BuildStatus.DROPPED, identity=identity, reasons=(reason,))

    @classmethod
    def tainted(cls, entity: TrackedEntity, reasons: list[str]) -> BuildResult:
        entity.tainted = True
        entity.errors = list(reasons)
        return cls(
            status=BuildStatus.TAINTED,
            identity=entity.identity,
            entity=entity,
            reasons=tuple(reasons),
        )

    @classmethod
    def built(cls, entity: TrackedEntity) -> BuildResult:
        return cls(status=BuildStatus.BUILT, identity=entity.identity, entity=entity)


@dataclass(frozen=True)
class OrphanedLoadBalancer:
    """A fleet load balancer whose owning ingress cannot be determined."""

    handle: LoadBalancerHandle
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.handle.to_dict(), "reason": self.reason}
