"""Tests for the in-memory platform, metrics and health check adapters."""

import pytest

from conftest import make_spec
from stagegate.domain.entities.autoscale import MetricKind
from stagegate.domain.entities.resource_spec import ReadinessKind
from stagegate.domain.errors import ApplyError, MetricUnavailable
from stagegate.domain.services.readiness_predicates import evaluate_observation
from stagegate.infrastructure.adapters.simulated_platform import (
    SimulatedHealthCheck,
    SimulatedPlatform,
    StaticMetricsSource,
)


class TestSimulatedPlatform:
    @pytest.mark.asyncio
    async def test_unapplied_resource_is_missing(self):
        platform = SimulatedPlatform()
        observation = await platform.observe(make_spec("a"))
        assert not observation.exists

    @pytest.mark.asyncio
    async def test_ready_after_observations(self):
        platform = SimulatedPlatform(ready_after={"deployment/web": 2})
        spec = make_spec("deployment/web", kind="deployment",
                         readiness=ReadinessKind.REPLICAS, replicas=3)
        await platform.apply(spec)

        seen = [(await platform.observe(spec)).ready_replicas for _ in range(3)]

        assert seen == [0, 0, 3]

    @pytest.mark.asyncio
    async def test_reapply_resets_progress(self):
        platform = SimulatedPlatform(default_ready_after=1)
        spec = make_spec("a")
        await platform.apply(spec)
        await platform.observe(spec)
        await platform.observe(spec)
        assert platform.is_ready("a")

        await platform.apply(spec)

        assert not platform.is_ready("a")
        assert platform.apply_calls == ["a", "a"]

    @pytest.mark.asyncio
    async def test_rejection(self):
        platform = SimulatedPlatform(rejected={"a": "forbidden"})
        with pytest.raises(ApplyError, match="forbidden"):
            await platform.apply(make_spec("a"))
        assert "a" not in platform.resources

    @pytest.mark.asyncio
    async def test_never_ready(self):
        platform = SimulatedPlatform(never_ready=["a"])
        spec = make_spec("a")
        await platform.apply(spec)
        for _ in range(5):
            await platform.observe(spec)
        assert not platform.is_ready("a")

    @pytest.mark.asyncio
    async def test_immediate_readiness_follows_platform_state(self):
        platform = SimulatedPlatform(ready_after={"a": 1}, never_ready=["b"])
        a, b = make_spec("a"), make_spec("b")
        await platform.apply(a)
        await platform.apply(b)

        first = await platform.observe(a)
        second = await platform.observe(a)
        stuck = await platform.observe(b)

        assert first.ready is False
        assert not evaluate_observation(a.readiness, first).ready
        assert evaluate_observation(a.readiness, second).ready
        assert not evaluate_observation(b.readiness, stuck).ready
        assert "not ready" in str(stuck)

    @pytest.mark.asyncio
    async def test_applied_workload_can_be_scaled(self):
        platform = SimulatedPlatform()
        spec = make_spec("deployment/web", kind="deployment",
                         readiness=ReadinessKind.REPLICAS, replicas=2)
        await platform.apply(spec)

        await platform.scale("web", "test", 5)

        assert await platform.get_replicas("web", "test") == 5
        assert (await platform.observe(spec)).desired_replicas == 5

    @pytest.mark.asyncio
    async def test_scaling_unknown_workload_fails(self):
        platform = SimulatedPlatform()
        with pytest.raises(ApplyError, match="not found"):
            await platform.scale("web", "test", 3)
        with pytest.raises(ApplyError):
            await platform.get_replicas("web", "other")


class TestStaticMetricsSource:
    @pytest.mark.asyncio
    async def test_reading_and_missing_reading(self):
        source = StaticMetricsSource({("web", MetricKind.CPU): 55.0})
        assert await source.read_utilization("web", "test", MetricKind.CPU) == 55.0
        with pytest.raises(MetricUnavailable, match="memory utilization unavailable for web"):
            await source.read_utilization("web", "test", MetricKind.MEMORY)


class TestSimulatedHealthCheck:
    @pytest.mark.asyncio
    async def test_failing_urls(self):
        health = SimulatedHealthCheck(failing=["http://down/health"])

        up = await health.check("http://up/health")
        down = await health.check("http://down/health")

        assert up.ready
        assert not down.ready
        assert "503" in down.detail
        assert health.checked == ["http://up/health", "http://down/health"]
