"""Desired-state builder.

Translates one ingress spec into one tracked entity. No cloud calls are
made here; backend ports are resolved through a :class:`ServicePortResolver`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from .exceptions import (
    AnnotationError,
    BackendResolutionError,
    ServiceNotFoundError,
    ServicePortNotFoundError,
    ServiceTypeError,
)
from .identity import INGRESS_CLASS_ANNOTATION, identity_of
from .models import (
    Backend,
    BuildResult,
    DesiredState,
    IngressSpec,
    RoutingRule,
    ServiceSpec,
    TrackedEntity,
)

logger = logging.getLogger(__name__)

ANNOTATION_PREFIX = "alb.ingress.kubernetes.io/"
SCHEME_ANNOTATION = f"{ANNOTATION_PREFIX}scheme"
SUBNETS_ANNOTATION = f"{ANNOTATION_PREFIX}subnets"
SECURITY_GROUPS_ANNOTATION = f"{ANNOTATION_PREFIX}security-groups"
TAGS_ANNOTATION = f"{ANNOTATION_PREFIX}tags"
LISTEN_PORTS_ANNOTATION = f"{ANNOTATION_PREFIX}listen-ports"

VALID_SCHEMES = ("internal", "internet-facing")
DEFAULT_SCHEME = "internal"
DEFAULT_LISTEN_PORTS = (80,)

# Service types whose ports are reachable on every node
NODE_PORT_SERVICE_TYPES = ("NodePort", "LoadBalancer")


class ServicePortResolver(Protocol):
    """Resolves a service port to the node port the load balancer targets."""

    def resolve_node_port(self, service_key: str, backend_port: int) -> int: ...


class ServiceCatalog:
    """
    In-memory :class:`ServicePortResolver` over a set of services.

    Raises:
        ServiceNotFoundError: The service does not exist
        ServiceTypeError: The service is not NodePort/LoadBalancer
        ServicePortNotFoundError: The port is not declared on the service
    """

    def __init__(self, services: Iterable[ServiceSpec] = ()) -> None:
        self._services = {svc.key: svc for svc in services}

    def resolve_node_port(self, service_key: str, backend_port: int) -> int:
        service = self._services.get(service_key)
        if service is None:
            raise ServiceNotFoundError(service_key, backend_port)

        if service.type not in NODE_PORT_SERVICE_TYPES:
            raise ServiceTypeError(service_key, backend_port, service.type)

        for port in service.ports:
            if port.port == backend_port and port.node_port is not None:
                return port.node_port

        raise ServicePortNotFoundError(service_key, backend_port)


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _parse_scheme(annotations: dict[str, str]) -> str:
    scheme = annotations.get(SCHEME_ANNOTATION, DEFAULT_SCHEME)
    if scheme not in VALID_SCHEMES:
        raise AnnotationError(
            SCHEME_ANNOTATION, scheme, f"must be one of {', '.join(VALID_SCHEMES)}"
        )
    return scheme


def _parse_tags(annotations: dict[str, str]) -> tuple[tuple[str, str], ...]:
    raw = annotations.get(TAGS_ANNOTATION, "")
    tags: list[tuple[str, str]] = []
    for item in _split_list(raw):
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise AnnotationError(TAGS_ANNOTATION, raw, f"expected key=value, got {item!r}")
        tags.append((key.strip(), value.strip()))
    return tuple(sorted(tags))


def _parse_listen_ports(annotations: dict[str, str]) -> tuple[int, ...]:
    raw = annotations.get(LISTEN_PORTS_ANNOTATION)
    if raw is None:
        return DEFAULT_LISTEN_PORTS
    ports: list[int] = []
    for item in _split_list(raw):
        try:
            port = int(item)
        except ValueError:
            raise AnnotationError(LISTEN_PORTS_ANNOTATION, raw, f"{item!r} is not a port") from None
        if not 1 <= port <= 65535:
            raise AnnotationError(LISTEN_PORTS_ANNOTATION, raw, f"{port} is out of range")
        ports.append(port)
    if not ports:
        raise AnnotationError(LISTEN_PORTS_ANNOTATION, raw, "no ports given")
    return tuple(sorted(set(ports)))


def _routes(spec: IngressSpec) -> list[tuple[str | None, str | None, Backend]]:
    routes: list[tuple[str | None, str | None, Backend]] = []
    if spec.default_backend is not None:
        routes.append((None, None, spec.default_backend))
    for rule in spec.rules:
        for path in rule.paths:
            routes.append((rule.host, path.path, path.backend))
    return routes


def build_entity(spec: IngressSpec, resolver: ServicePortResolver) -> BuildResult:
    """
    Build a tracked entity from one ingress spec.

    Returns:
        ``DROPPED`` when the spec has no backend linkage or carries unusable
        annotations; ``TAINTED`` when some backend port could not be
        resolved (the entity still carries every rule, unresolved ones with
        ``node_port=None``); ``BUILT`` otherwise.
    """
    identity = identity_of(spec)

    routes = _routes(spec)
    if not routes:
        logger.info("Ignoring ingress %s: no backend is referenced", identity)
        return BuildResult.dropped(identity, "no backend referenced")

    try:
        scheme = _parse_scheme(spec.annotations)
        tags = _parse_tags(spec.annotations)
        listen_ports = _parse_listen_ports(spec.annotations)
    except AnnotationError as e:
        logger.warning("Ignoring ingress %s: %s", identity, e)
        return BuildResult.dropped(identity, str(e))

    rules: list[RoutingRule] = []
    reasons: list[str] = []
    for host, path, backend in routes:
        service_key = f"{spec.namespace}/{backend.service_name}"
        node_port: int | None = None
        try:
            node_port = resolver.resolve_node_port(service_key, backend.service_port)
        except BackendResolutionError as e:
            reasons.append(str(e))
        rules.append(
            RoutingRule(
                host=host,
                path=path,
                service_key=service_key,
                service_port=backend.service_port,
                node_port=node_port,
            )
        )

    desired = DesiredState(
        scheme=scheme,
        subnets=_split_list(spec.annotations.get(SUBNETS_ANNOTATION, "")),
        security_groups=_split_list(spec.annotations.get(SECURITY_GROUPS_ANNOTATION, "")),
        tags=tags,
        listen_ports=listen_ports,
        ingress_class=spec.annotations.get(INGRESS_CLASS_ANNOTATION, ""),
        rules=tuple(rules),
    )
    entity = TrackedEntity(identity=identity, desired_state=desired)

    if reasons:
        logger.warning("Ingress %s is tainted: %s", identity, "; ".join(reasons))
        return BuildResult.tainted(entity, reasons)

    return BuildResult.built(entity)
