"""Tests for the controller loop."""

import asyncio

import pytest
from prometheus_client import REGISTRY

from alb_reconciler.config import ControllerSettings
from alb_reconciler.controller import IngressController
from alb_reconciler.exceptions import BootstrapError
from alb_reconciler.manifest import ManifestSource
from alb_reconciler.models import Identity


def _sample(name: str) -> float:
    return REGISTRY.get_sample_value(name) or 0.0


class StaticSource:
    """Spec source returning whatever ``specs`` holds at call time."""

    def __init__(self, specs=None) -> None:
        self.specs = list(specs or [])
        self.calls = 0

    async def list_ingresses(self):
        self.calls += 1
        return list(self.specs)


@pytest.fixture
def settings() -> ControllerSettings:
    return ControllerSettings(cluster_name="prod", sync_interval=0.01, max_concurrency=4)


@pytest.fixture
def make_controller(settings, catalog, inventory, converger):
    def _make(specs=()):
        source = StaticSource(specs)
        return IngressController(settings, source, catalog, inventory, converger)

    return _make


class TestOnUpdate:
    async def test_first_update_bootstraps_once(self, make_controller, make_spec, inventory):
        inventory.add("prod-aaa", "ns", "foo")
        controller = make_controller()

        await controller.on_update([make_spec("foo")])
        await controller.on_update([make_spec("foo")])

        assert inventory.list_calls == 1
        (entity,) = controller.store.snapshot()
        assert entity.identity == Identity("ns", "foo")
        assert [h.name for h in entity.load_balancers] == ["prod-aaa"]

    async def test_empty_fleet_bootstraps_once(self, make_controller, inventory):
        controller = make_controller()

        await controller.on_update([])
        await controller.on_update([])

        assert inventory.list_calls == 1
        assert controller.store.initialized

    async def test_orphans_are_recorded(self, make_controller, inventory):
        inventory.add("prod-aaa")
        controller = make_controller()

        await controller.on_update([])

        assert [o["name"] for o in controller.store.as_dict()["orphans"]] == ["prod-aaa"]

    async def test_bootstrap_failure_leaves_store_uninitialized(
        self, make_controller, make_spec, inventory
    ):
        inventory.fail_listing = True
        controller = make_controller()

        with pytest.raises(BootstrapError):
            await controller.on_update([make_spec("foo")])

        assert not controller.store.initialized

    async def test_updates_metrics(self, make_controller, make_spec):
        controller = make_controller()
        before = _sample("alb_reconciler_diff_cycles_total")

        await controller.on_update([make_spec("foo"), make_spec("bar", service="missing")])

        assert _sample("alb_reconciler_diff_cycles_total") == before + 1
        assert _sample("alb_reconciler_managed_ingresses") == 2
        assert _sample("alb_reconciler_tainted_ingresses") == 1


class TestReload:
    async def test_converges_snapshot(self, make_controller, make_spec, converger):
        controller = make_controller()
        await controller.on_update([make_spec("foo"), make_spec("bar")])

        result = await controller.reload()

        assert sorted(result.succeeded) == ["ns/bar", "ns/foo"]
        assert sorted(converger.converged) == ["ns/bar", "ns/foo"]

    async def test_reload_before_first_update_is_a_noop(self, make_controller, converger):
        result = await make_controller().reload()
        assert result.total == 0
        assert converger.converged == []

    async def test_failures_are_counted(self, make_controller, make_spec, converger):
        converger.fail.add("ns/foo")
        controller = make_controller()
        await controller.on_update([make_spec("foo"), make_spec("bar")])
        before = _sample("alb_reconciler_convergence_failures_total")

        result = await controller.reload()

        assert result.failed == {"ns/foo": "boom: ns/foo"}
        assert result.succeeded == ["ns/bar"]
        assert _sample("alb_reconciler_convergence_failures_total") == before + 1


class TestSyncOnce:
    async def test_removed_ingress_is_torn_down_then_forgotten(
        self, make_controller, make_spec, inventory
    ):
        inventory.add("prod-aaa", "ns", "foo")
        controller = make_controller([make_spec("foo")])
        await controller.sync_once()

        controller.source.specs = []
        await controller.sync_once()
        # Teardown cleared the handles; the next diff forgets the entity
        (entity,) = controller.store.snapshot()
        assert entity.pending_deletion
        assert entity.load_balancers == []

        await controller.sync_once()
        assert controller.store.snapshot() == []

    async def test_malformed_manifest_does_not_block_the_fleet(
        self, tmp_path, settings, inventory, converger
    ):
        (tmp_path / "bad.yaml").write_text(
            "kind: Ingress\n"
            "metadata: {name: broken, namespace: ns}\n"
            "spec: {rules: [{http: {paths: [{path: /}]}}]}\n"
        )
        (tmp_path / "good.yaml").write_text(
            "kind: Ingress\n"
            "metadata: {name: foo, namespace: ns}\n"
            "spec: {backend: {serviceName: web, servicePort: 80}}\n"
            "---\n"
            "kind: Service\n"
            "metadata: {name: web, namespace: ns}\n"
            "spec: {type: NodePort, ports: [{port: 80, nodePort: 30080}]}\n"
        )
        source = ManifestSource(tmp_path)
        controller = IngressController(settings, source, source, inventory, converger)

        await controller.sync_once()

        assert [str(e.identity) for e in controller.store.snapshot()] == ["ns/foo"]
        assert converger.converged == ["ns/foo"]


class TestRun:
    async def test_runs_until_stopped(self, make_controller, make_spec):
        controller = make_controller([make_spec("foo")])
        stop = asyncio.Event()

        task = asyncio.create_task(controller.run(stop))
        while controller.source.calls < 3:
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

        assert controller.store.initialized

    async def test_bootstrap_error_is_fatal(self, make_controller, inventory):
        inventory.fail_listing = True
        controller = make_controller()

        with pytest.raises(BootstrapError):
            await asyncio.wait_for(controller.run(asyncio.Event()), timeout=1)

    async def test_other_errors_are_retried(self, make_controller):
        controller = make_controller()
        stop = asyncio.Event()

        async def flaky():
            controller.source.calls += 1
            if controller.source.calls == 1:
                raise RuntimeError("spec source unavailable")
            stop.set()
            return []

        controller.source.list_ingresses = flaky

        await asyncio.wait_for(controller.run(stop), timeout=1)

        assert controller.source.calls == 2
        assert controller.store.initialized
