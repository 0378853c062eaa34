"""Tests for the convergence dispatcher."""

from alb_reconciler.dispatcher import DispatchResult, dispatch
from alb_reconciler.models import DesiredState, Identity, TrackedEntity


def entities(*names: str) -> list[TrackedEntity]:
    return [
        TrackedEntity(identity=Identity("ns", name), desired_state=DesiredState())
        for name in names
    ]


class TestDispatch:
    async def test_converges_every_entity(self, converger):
        result = await dispatch(entities("a", "b", "c"), converger)

        assert sorted(result.succeeded) == ["ns/a", "ns/b", "ns/c"]
        assert result.failed == {}
        assert sorted(converger.converged) == ["ns/a", "ns/b", "ns/c"]

    async def test_empty_set(self, converger):
        result = await dispatch([], converger)
        assert result.total == 0

    async def test_failure_is_isolated(self, converger):
        converger.fail.add("ns/b")

        result = await dispatch(entities("a", "b", "c"), converger)

        assert sorted(result.succeeded) == ["ns/a", "ns/c"]
        assert result.failed == {"ns/b": "boom: ns/b"}

    async def test_concurrency_is_capped(self, converger):
        converger.delay = 0.01

        result = await dispatch(entities(*"abcdefgh"), converger, max_concurrency=2)

        assert len(result.succeeded) == 8
        assert converger.max_in_flight == 2

    async def test_unbounded_runs_all_at_once(self, converger):
        converger.delay = 0.01

        await dispatch(entities(*"abcdefgh"), converger, max_concurrency=0)

        assert converger.max_in_flight == 8

    async def test_per_entity_timeout(self, converger):
        converger.hang.add("ns/b")

        result = await dispatch(entities("a", "b"), converger, converge_timeout=0.05)

        assert result.succeeded == ["ns/a"]
        assert result.failed == {"ns/b": "timed out after 0.05s"}

    async def test_deadline_cancels_stragglers(self, converger):
        converger.hang.add("ns/b")

        result = await dispatch(
            entities("a", "b"), converger, converge_timeout=None, deadline=0.05
        )

        assert result.succeeded == ["ns/a"]
        assert result.failed == {"ns/b": "dispatch deadline exceeded"}

    async def test_deadline_covers_queued_entities(self, converger):
        converger.hang.add("ns/a")

        result = await dispatch(
            entities("a", "b"),
            converger,
            max_concurrency=1,
            converge_timeout=None,
            deadline=0.05,
        )

        assert result.succeeded == []
        assert set(result.failed) == {"ns/a", "ns/b"}

    async def test_pending_deletion_entities_are_dispatched(self, converger):
        gone = TrackedEntity(identity=Identity("ns", "gone"))

        result = await dispatch([gone], converger)

        assert result.succeeded == ["ns/gone"]


class TestDispatchResult:
    def test_as_dict_is_sorted(self):
        result = DispatchResult(succeeded=["ns/b", "ns/a"], failed={"ns/d": "x", "ns/c": "y"})
        assert result.as_dict() == {
            "succeeded": ["ns/a", "ns/b"],
            "failed": {"ns/c": "y", "ns/d": "x"},
        }
        assert result.total == 4
