"""Tests for the OpenTelemetry exporter."""

import pytest

from stagegate.domain.entities.autoscale import ReplicasScaledEvent
from stagegate.domain.entities.rollout_state import (
    ResourceFailedEvent,
    ResourceReadyEvent,
    RolloutCompletedEvent,
)
from stagegate.infrastructure.event_bus import EventBus
from stagegate.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter


class TestOTELConfig:
    def test_plaintext_remote_endpoint_rejected(self):
        with pytest.raises(ValueError, match="insecure=True"):
            OTELConfig(endpoint="http://collector.example.com:4317")

    def test_localhost_and_explicit_insecure_allowed(self):
        OTELConfig(endpoint="http://localhost:4317")
        OTELConfig(endpoint="http://collector.example.com:4317", insecure=True)


class TestOTELExporter:
    @pytest.mark.asyncio
    async def test_disabled_without_endpoint(self):
        exporter = OTELExporter(OTELConfig())
        await exporter.initialize()
        assert not exporter.enabled
        assert exporter.start_span("stagegate.rollout") is None
        exporter.end_span(None)

    @pytest.mark.asyncio
    async def test_events_become_metrics(self):
        exporter = OTELExporter(OTELConfig())
        bus = EventBus()
        bus.subscribe_all(exporter.handle_event)

        await bus.publish([
            ResourceReadyEvent("r1", resource="configmap/a", stage=0),
            ResourceFailedEvent("r1", resource="deployment/b", stage=1, error="x", optional=True),
            RolloutCompletedEvent("r1", resources=2),
            ReplicasScaledEvent("backend-a", workload="backend-a", previous_replicas=2, replicas=4),
        ])

        names = [m["name"] for m in exporter.buffered]
        assert names == [
            "stagegate.resource.ready",
            "stagegate.resource.failed",
            "stagegate.rollout.completed",
            "stagegate.workload.replicas",
        ]
        assert exporter.buffered[1]["attributes"]["optional"] == "True"
        assert exporter.buffered[3]["value"] == 4.0

    @pytest.mark.asyncio
    async def test_export_clears_buffer(self):
        exporter = OTELExporter(OTELConfig())
        exporter.record_metric("stagegate.stage.ready", 3.0)
        await exporter.export()
        assert exporter.buffered == []

    def test_buffer_keeps_only_newest_metrics(self):
        exporter = OTELExporter(OTELConfig(), max_buffered=3)
        for replicas in range(10):
            exporter.record_metric("stagegate.workload.replicas", float(replicas))

        assert [m["value"] for m in exporter.buffered] == [7.0, 8.0, 9.0]
