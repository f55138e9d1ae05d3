"""Tests for the SQLite rollout and scale history repository."""

from datetime import datetime, timedelta, UTC

import pytest

from conftest import make_spec
from stagegate.domain.entities.autoscale import MetricKind, ScaleAction, ScaleDecision
from stagegate.domain.entities.rollout_state import ResourceStatus, RolloutState
from stagegate.infrastructure.repositories.sqlite_repository import SQLiteRepository


@pytest.fixture
def repo(tmp_path):
    repository = SQLiteRepository(str(tmp_path / "test.db"))
    repository.connect()
    yield repository
    repository.close()


def finished_state(namespace="shop", started=None):
    state = RolloutState.for_specs(
        [make_spec("a"), make_spec("b", stage=1, depends_on=["a"])], namespace=namespace
    )
    if started:
        state.started_at = started
    state.mark_applying("a")
    state.mark_waiting("a")
    state.mark_ready("a", observed="exists")
    state.mark_applying("b")
    state.mark_failed("b", "quota exceeded")
    state.abort("stage 1 failed: b", 1)
    return state


def decision(workload="web", action=ScaleAction.SCALE_UP, replicas=4):
    return ScaleDecision(
        workload=workload,
        action=action,
        previous_replicas=2,
        replicas=replicas,
        desired_replicas=replicas,
        reason="cpu 140% vs target 70%",
        driving_metric=MetricKind.CPU,
    )


class TestRollouts:
    def test_round_trip(self, repo):
        state = finished_state()
        repo.save_rollout(state)

        loaded = repo.get_rollout(state.rollout_id)

        assert loaded is not None
        assert loaded.namespace == "shop"
        assert loaded.aborted_reason == "stage 1 failed: b"
        assert loaded.failed_stage == 1
        assert not loaded.succeeded
        assert loaded.status_of("a") == ResourceStatus.READY
        assert loaded.records["b"].error == "quota exceeded"
        assert loaded.records["a"].at(ResourceStatus.READY) == state.records["a"].at(ResourceStatus.READY)

    def test_save_replaces_resource_rows(self, repo):
        state = RolloutState.for_specs([make_spec("a")], namespace="shop")
        repo.save_rollout(state)
        state.mark_applying("a")
        state.mark_waiting("a")
        state.mark_ready("a")
        state.complete()
        repo.save_rollout(state)

        loaded = repo.get_rollout(state.rollout_id)

        assert len(loaded.records) == 1
        assert loaded.succeeded

    def test_latest_rollout_by_namespace(self, repo):
        base = datetime(2026, 1, 1, tzinfo=UTC)
        older = finished_state("shop", base)
        newer = finished_state("shop", base + timedelta(minutes=5))
        other = finished_state("billing", base + timedelta(minutes=10))
        for state in (older, newer, other):
            repo.save_rollout(state)

        assert repo.latest_rollout("shop").rollout_id == newer.rollout_id
        assert repo.latest_rollout().rollout_id == other.rollout_id
        assert repo.latest_rollout("none") is None
        assert [r["rollout_id"] for r in repo.list_rollouts(limit=2)] == [
            other.rollout_id, newer.rollout_id,
        ]

    def test_unknown_rollout(self, repo):
        assert repo.get_rollout("missing") is None


class TestScaleEvents:
    def test_record_and_query(self, repo):
        repo.record_scale(decision("web"), "shop")
        repo.record_scale(decision("web", ScaleAction.SCALE_DOWN, 3), "shop")
        repo.record_scale(decision("api"), "shop")

        web = repo.recent_scale_events("web")

        assert [e["action"] for e in web] == ["scale_down", "scale_up"]
        assert web[0]["driving_metric"] == "cpu"
        assert web[0]["namespace"] == "shop"
        assert len(repo.recent_scale_events()) == 3
        assert len(repo.recent_scale_events(limit=1)) == 1
