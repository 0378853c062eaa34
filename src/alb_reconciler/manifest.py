"""YAML manifest parsing for Ingress and Service documents.

Accepts Kubernetes-style documents. Both backend shapes are understood:

- ``extensions/v1beta1``: ``backend: {serviceName: web, servicePort: 80}``
- ``networking.k8s.io/v1``: ``backend: {service: {name: web, port: {number: 80}}}``
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from .builder import ServiceCatalog
from .exceptions import ManifestError
from .models import (
    Backend,
    IngressPath,
    IngressRule,
    IngressSpec,
    ServicePort,
    ServiceSpec,
)

logger = logging.getLogger(__name__)

MANIFEST_SUFFIXES = (".yaml", ".yml")


class SpecSource(Protocol):
    """Yields the complete current list of ingress specs on each call."""

    async def list_ingresses(self) -> list[IngressSpec]: ...


def _metadata(doc: dict[str, Any]) -> tuple[str, str, dict[str, str]]:
    meta = doc.get("metadata") or {}
    name = meta.get("name")
    if not name:
        raise ManifestError(f"{doc.get('kind', 'document')} is missing metadata.name")
    namespace = meta.get("namespace") or "default"
    annotations = {str(k): str(v) for k, v in (meta.get("annotations") or {}).items()}
    return namespace, name, annotations


def _malformed(kind: str, doc: Any, error: Exception) -> ManifestError:
    name = None
    if isinstance(doc, dict) and isinstance(doc.get("metadata"), dict):
        name = doc["metadata"].get("name")
    if isinstance(error, KeyError):
        detail = f"missing field {error.args[0]!r}"
    else:
        detail = str(error)
    return ManifestError(f"malformed {kind} {name or '<unnamed>'}: {detail}")


def backend_from_dict(d: dict[str, Any]) -> Backend:
    """Parse either backend shape into a :class:`Backend`."""
    if not isinstance(d, dict):
        raise ManifestError(f"backend must be a mapping, got {type(d).__name__}")
    if "service" in d:
        service = d["service"] or {}
        if not isinstance(service, dict):
            raise ManifestError("backend service must be a mapping")
        port = service.get("port") or {}
        if not isinstance(port, dict) or "number" not in port:
            raise ManifestError(f"backend service {service.get('name')!r} needs port.number")
        if not service.get("name"):
            raise ManifestError("backend service is missing name")
        try:
            return Backend(service_name=service["name"], service_port=int(port["number"]))
        except (TypeError, ValueError) as e:
            raise ManifestError(
                f"backend port.number must be a number: {port['number']!r}"
            ) from e
    try:
        return Backend(service_name=d["serviceName"], service_port=int(d["servicePort"]))
    except KeyError as e:
        raise ManifestError(f"backend is missing {e.args[0]}") from e
    except (TypeError, ValueError) as e:
        port = d.get("servicePort")
        raise ManifestError(f"backend servicePort must be a number: {port!r}") from e


def ingress_from_dict(doc: dict[str, Any]) -> IngressSpec:
    """Parse an Ingress document.

    Raises:
        ManifestError: If any required field is missing or has the wrong shape
    """
    try:
        namespace, name, annotations = _metadata(doc)
        spec = doc.get("spec") or {}

        default = spec.get("defaultBackend") or spec.get("backend")
        default_backend = backend_from_dict(default) if default else None

        rules = []
        for raw_rule in spec.get("rules") or []:
            paths = tuple(
                IngressPath(path=p.get("path"), backend=backend_from_dict(p["backend"]))
                for p in (raw_rule.get("http") or {}).get("paths") or []
            )
            rules.append(IngressRule(host=raw_rule.get("host"), paths=paths))
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise _malformed("Ingress", doc, e) from e

    return IngressSpec(
        namespace=namespace,
        name=name,
        annotations=annotations,
        rules=tuple(rules),
        default_backend=default_backend,
    )


def service_from_dict(doc: dict[str, Any]) -> ServiceSpec:
    """Parse a Service document."""
    try:
        namespace, name, _ = _metadata(doc)
        spec = doc.get("spec") or {}
        ports = tuple(
            ServicePort(
                port=int(p["port"]),
                node_port=int(p["nodePort"]) if p.get("nodePort") is not None else None,
            )
            for p in spec.get("ports") or []
        )
        service_type = spec.get("type", "ClusterIP")
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise _malformed("Service", doc, e) from e
    return ServiceSpec(
        namespace=namespace,
        name=name,
        type=service_type,
        ports=ports,
    )


def parse_documents(
    yaml_str: str,
) -> tuple[list[IngressSpec], list[ServiceSpec]]:
    """Parse a multi-document YAML string into ingresses and services.

    Documents of other kinds are ignored. A malformed Ingress or Service is
    logged and skipped so the remaining documents still count.

    Raises:
        ManifestError: If the YAML itself cannot be parsed
    """
    import yaml

    ingresses: list[IngressSpec] = []
    services: list[ServiceSpec] = []
    try:
        documents = list(yaml.safe_load_all(yaml_str))
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML: {e}") from e

    for doc in documents:
        if not isinstance(doc, dict):
            continue
        kind = doc.get("kind")
        try:
            if kind == "Ingress":
                ingresses.append(ingress_from_dict(doc))
            elif kind == "Service":
                services.append(service_from_dict(doc))
        except ManifestError as e:
            logger.warning("Skipping %s document: %s", kind, e)
            continue
        if kind == "List":
            items = yaml.safe_dump_all(doc.get("items") or [])
            nested_ingresses, nested_services = parse_documents(items)
            ingresses.extend(nested_ingresses)
            services.extend(nested_services)
    return ingresses, services


class ManifestSource:
    """
    Reads ingress and service manifests from a file or directory.

    Every call to :meth:`list_ingresses` re-reads the files, so the result
    is always the complete current set. Services found along the way back
    :meth:`resolve_node_port`, so the source doubles as the port resolver.

    Example:
        source = ManifestSource(Path("manifests/"))
        specs = await source.list_ingresses()
        result = build_entity(specs[0], source)
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.services: list[ServiceSpec] = []
        self._catalog = ServiceCatalog()

    def _files(self) -> list[Path]:
        if self.path.is_dir():
            return sorted(p for p in self.path.rglob("*") if p.suffix in MANIFEST_SUFFIXES)
        return [self.path]

    def load(self) -> list[IngressSpec]:
        """Read all manifests synchronously."""
        ingresses: list[IngressSpec] = []
        services: list[ServiceSpec] = []
        for file in self._files():
            try:
                file_ingresses, file_services = parse_documents(file.read_text())
            except ManifestError as e:
                raise ManifestError(f"{file}: {e}") from e
            ingresses.extend(file_ingresses)
            services.extend(file_services)
        self.services = services
        self._catalog = ServiceCatalog(services)
        logger.debug(
            "Loaded %d ingresses and %d services from %s",
            len(ingresses),
            len(services),
            self.path,
        )
        return ingresses

    async def list_ingresses(self) -> list[IngressSpec]:
        return self.load()

    def resolve_node_port(self, service_key: str, backend_port: int) -> int:
        """Resolve against the services read by the last :meth:`load`."""
        return self._catalog.resolve_node_port(service_key, backend_port)
