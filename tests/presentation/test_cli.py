"""Tests for CLI module."""

import json
from pathlib import Path

import pytest
from unittest.mock import patch, AsyncMock, MagicMock

from conftest import make_spec
from stagegate.application.dtos.rollout_dtos import RolloutResponse
from stagegate.domain.entities.autoscale import MetricKind
from stagegate.domain.entities.rollout_state import RolloutState
from stagegate.domain.errors import ConfigurationError
from stagegate.presentation.cli.cli import async_main, parse_load

DEMO = str(Path(__file__).resolve().parents[2] / "demo" / "manifests")


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "stagegate.json"
    path.write_text(json.dumps({"storage": {"db_path": str(tmp_path / "cli.db")}}))
    return str(path)


def _make_container(response=None, error=None):
    container = MagicMock()
    container.rollout = MagicMock()
    container.rollout.execute = AsyncMock(return_value=response, side_effect=error)
    container.telemetry.initialize = AsyncMock()
    container.telemetry.export = AsyncMock()
    return container


def _response(failed=False):
    state = RolloutState.for_specs([make_spec("a")], namespace="shop")
    state.mark_applying("a")
    if failed:
        state.mark_failed("a", "quota exceeded")
        state.abort("stage 0 failed: a", 0)
    else:
        state.mark_waiting("a")
        state.mark_ready("a")
        state.complete()
    return RolloutResponse.from_state(state)


class TestCLIHelp:
    @pytest.mark.asyncio
    async def test_no_command_prints_help(self, capsys, config_file):
        with patch("sys.argv", ["stagegate", "-c", config_file]):
            assert await async_main() == 0
        assert "staged rollouts" in capsys.readouterr().out

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", ["rollout", "status", "policy", "autoscale", "dash"])
    async def test_subcommand_help(self, command):
        with patch("sys.argv", ["stagegate", command, "--help"]), \
             pytest.raises(SystemExit, match="0"):
            await async_main()


class TestParseLoad:
    def test_default_metric_is_cpu(self):
        assert parse_load("backend-a=85") == ("backend-a", MetricKind.CPU, 85.0)

    def test_explicit_metric(self):
        assert parse_load("backend-b:memory=60.5") == ("backend-b", MetricKind.MEMORY, 60.5)

    @pytest.mark.parametrize("value", ["backend-a", "backend-a:disk=10", "backend-a=high"])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_load(value)


class TestRolloutCommand:
    @pytest.mark.asyncio
    async def test_settled_rollout_exits_zero(self, capsys, config_file):
        container = _make_container(_response())
        with patch("stagegate.composition_root.create_container", return_value=container):
            code = await async_main(["-c", config_file, "rollout", "manifests", "-n", "shop"])

        assert code == 0
        out = capsys.readouterr().out
        assert "Rolling out manifests into namespace 'shop'" in out
        assert "[+] Rollout settled: 1/1 resources ready" in out
        request = container.rollout.execute.call_args.args[0]
        assert request.namespace == "shop"
        container.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_aborted_rollout_exits_one(self, capsys, config_file):
        container = _make_container(_response(failed=True))
        with patch("stagegate.composition_root.create_container", return_value=container):
            code = await async_main(["-c", config_file, "rollout", "manifests"])

        assert code == 1
        out = capsys.readouterr().out
        assert "[-] Rollout aborted: stage 0 failed: a" in out
        assert "quota exceeded" in out

    @pytest.mark.asyncio
    async def test_configuration_error_exits_two(self, capsys, config_file):
        container = _make_container(error=ConfigurationError("Circular dependency: a -> b -> a"))
        with patch("stagegate.composition_root.create_container", return_value=container):
            code = await async_main(["-c", config_file, "rollout", "manifests"])

        assert code == 2
        assert "Circular dependency" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_timeout_flag_sets_default_timeout(self, config_file):
        container = _make_container(_response())
        with patch("stagegate.composition_root.create_container",
                   return_value=container) as factory:
            await async_main(["-c", config_file, "rollout", "manifests", "--timeout", "45"])

        config = factory.call_args.args[0]
        assert config.rollout.default_timeout == 45

    @pytest.mark.asyncio
    async def test_dry_run_prints_plan(self, capsys, config_file):
        code = await async_main(
            ["-c", config_file, "rollout", DEMO, "-n", "three-tier",
             "--dry-run", "--simulate", "--timeout", "60"]
        )

        assert code == 0
        out = capsys.readouterr().out
        assert "stage 0: namespace/three-tier" in out
        assert "stage 5: ingress/frontend" in out

    @pytest.mark.asyncio
    async def test_dry_run_without_timeouts_is_rejected(self, capsys, config_file):
        code = await async_main(["-c", config_file, "rollout", DEMO, "--dry-run", "--simulate"])

        assert code == 2
        assert "No readiness timeout for" in capsys.readouterr().out


class TestStatusCommand:
    @pytest.mark.asyncio
    async def test_no_rollouts(self, capsys, config_file):
        code = await async_main(["-c", config_file, "status"])
        assert code == 1
        assert "No rollouts recorded" in capsys.readouterr().out


class TestPolicyCommand:
    @pytest.mark.asyncio
    async def test_allowed_flow(self, capsys, config_file):
        code = await async_main([
            "-c", config_file, "policy", DEMO,
            "--from", "app=frontend,tier=web",
            "--to", "app=backend-a,tier=backend",
            "--port", "8080",
        ])
        assert code == 0
        assert "[+] ALLOW" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_denied_flow(self, capsys, config_file):
        code = await async_main([
            "-c", config_file, "policy", DEMO,
            "--from", "app=frontend", "--to", "app=postgres", "-p", "5432",
        ])
        assert code == 1
        assert "[-] DENY" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_bad_selector_is_configuration_error(self, config_file):
        code = await async_main([
            "-c", config_file, "policy", DEMO,
            "--from", "app", "--to", "app=postgres", "-p", "5432",
        ])
        assert code == 2

