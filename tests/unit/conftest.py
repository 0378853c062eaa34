"""Unit test fixtures: spec factories and in-memory cloud fakes."""

import asyncio
from collections.abc import Callable

import pytest

from alb_reconciler.builder import ServiceCatalog
from alb_reconciler.exceptions import InventoryError
from alb_reconciler.models import (
    Backend,
    IngressPath,
    IngressRule,
    IngressSpec,
    LoadBalancerHandle,
    ServicePort,
    ServiceSpec,
    TrackedEntity,
)
from alb_reconciler.naming import (
    CLUSTER_TAG_KEY,
    INGRESS_NAME_TAG_KEY,
    NAMESPACE_TAG_KEY,
)

CLUSTER = "prod"


class FakeInventory:
    """In-memory load balancer inventory keyed by ARN."""

    def __init__(self) -> None:
        self.load_balancers: dict[str, LoadBalancerHandle] = {}
        self.tags: dict[str, dict[str, str]] = {}
        self.list_calls = 0
        self.fail_listing = False
        self.fail_tags_for: set[str] = set()
        self.tag_delay = 0.0
        self.tags_read: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(
        self,
        name: str,
        namespace: str | None = None,
        ingress: str | None = None,
        cluster: str = CLUSTER,
    ) -> LoadBalancerHandle:
        arn = f"arn:aws:elasticloadbalancing:us-east-1:123456789012:loadbalancer/app/{name}/x"
        handle = LoadBalancerHandle(arn=arn, name=name, dns_name=f"{name}.elb.amazonaws.com")
        tags = {CLUSTER_TAG_KEY: cluster}
        if namespace is not None:
            tags[NAMESPACE_TAG_KEY] = namespace
        if ingress is not None:
            tags[INGRESS_NAME_TAG_KEY] = ingress
        self.load_balancers[arn] = handle
        self.tags[arn] = tags
        return handle

    async def list_load_balancers(self, cluster_name: str) -> list[LoadBalancerHandle]:
        self.list_calls += 1
        if self.fail_listing:
            raise InventoryError(cluster_name, "AccessDenied")
        return sorted(
            (h for h in self.load_balancers.values() if h.name.startswith(f"{cluster_name}-")),
            key=lambda h: h.name,
        )

    async def get_tags(self, handle: LoadBalancerHandle) -> dict[str, str]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if handle.arn in self.fail_tags_for:
                raise InventoryError(handle.name, "Throttling")
            # Yield so sibling lookups interleave
            await asyncio.sleep(self.tag_delay)
            self.tags_read.append(handle.name)
            return dict(self.tags[handle.arn])
        finally:
            self.in_flight -= 1


class RecordingConverger:
    """Converger that records calls and can be told to fail or hang."""

    def __init__(self) -> None:
        self.converged: list[str] = []
        self.fail: set[str] = set()
        self.hang: set[str] = set()
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    async def converge(self, entity: TrackedEntity) -> None:
        key = str(entity.identity)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if key in self.hang:
                await asyncio.sleep(3600)
            if key in self.fail:
                raise RuntimeError(f"boom: {key}")
            if entity.desired_state is None and not entity.tainted:
                entity.load_balancers.clear()
            self.converged.append(key)
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_spec() -> Callable[..., IngressSpec]:
    """Factory for ingress specs routing ``host`` to ``service:port``."""

    def _make(
        name: str,
        namespace: str = "ns",
        service: str = "web",
        port: int = 80,
        annotations: dict[str, str] | None = None,
        host: str | None = "example.com",
    ) -> IngressSpec:
        return IngressSpec(
            namespace=namespace,
            name=name,
            annotations=annotations or {},
            rules=(
                IngressRule(
                    host=host,
                    paths=(IngressPath(path="/", backend=Backend(service, port)),),
                ),
            ),
        )

    return _make


@pytest.fixture
def catalog() -> ServiceCatalog:
    """Services in namespace ``ns``: a NodePort ``web`` and a ClusterIP ``internal``."""
    return ServiceCatalog(
        [
            ServiceSpec(
                namespace="ns",
                name="web",
                type="NodePort",
                ports=(ServicePort(port=80, node_port=30080), ServicePort(443, 30443)),
            ),
            ServiceSpec(
                namespace="ns",
                name="internal",
                type="ClusterIP",
                ports=(ServicePort(port=80),),
            ),
        ]
    )


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture
def converger() -> RecordingConverger:
    return RecordingConverger()
