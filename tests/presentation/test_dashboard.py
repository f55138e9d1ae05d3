"""Tests for the textual dashboard, driven headless through run_test()."""

import pytest
from textual.widgets import DataTable

from conftest import make_spec
from stagegate.domain.entities.autoscale import MetricKind, ScaleAction, ScaleDecision
from stagegate.domain.entities.rollout_state import RolloutState
from stagegate.infrastructure.repositories.sqlite_repository import SQLiteRepository
from stagegate.presentation.tui.dashboard import Dashboard


@pytest.fixture
def repo(tmp_path):
    repository = SQLiteRepository(str(tmp_path / "dash.db"))
    repository.connect()
    yield repository
    repository.close()


def seed(repo):
    state = RolloutState.for_specs(
        [make_spec("a"), make_spec("b", stage=1, depends_on=["a"])], namespace="shop"
    )
    for name in ("a", "b"):
        state.mark_applying(name)
        state.mark_waiting(name)
        state.mark_ready(name)
    state.complete()
    repo.save_rollout(state)
    repo.record_scale(
        ScaleDecision("web", ScaleAction.SCALE_UP, 2, 4, 4, "cpu 140% vs target 70%",
                      MetricKind.CPU),
        "shop",
    )
    return state


class TestDashboard:
    @pytest.mark.asyncio
    async def test_shows_latest_rollout_and_scaling(self, repo):
        state = seed(repo)
        app = Dashboard(repo, refresh_interval=60)

        async with app.run_test() as pilot:
            await pilot.pause()
            assert app.query_one("#resources", DataTable).row_count == 2
            assert app.query_one("#scaling", DataTable).row_count == 1
            assert state.rollout_id in app.sub_title

    @pytest.mark.asyncio
    async def test_empty_history(self, repo):
        app = Dashboard(repo, namespace="shop", refresh_interval=60)

        async with app.run_test() as pilot:
            await pilot.press("r")
            assert app.query_one("#resources", DataTable).row_count == 0
            assert app.sub_title == "no rollouts recorded"

    @pytest.mark.asyncio
    async def test_interval_actions(self, repo):
        app = Dashboard(repo, refresh_interval=5)

        async with app.run_test() as pilot:
            app.action_decrease_interval()
            app.action_increase_interval()
            app.action_increase_interval()
            await pilot.pause()
            assert app._refresh_interval == 6
