"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the stagegate application
- Single place where all adapters and use cases are wired together
- No adapter instantiation should occur outside this module (except tests)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies from StagegateConfig
- simulate=True swaps the kubectl adapters for in-memory ones
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from stagegate.application.orchestration.readiness import ReadinessChecks, ReadinessProber
from stagegate.application.orchestration.stage_sequencer import StageSequencer
from stagegate.application.use_cases.autoscale_loop import AutoscaleController
from stagegate.application.use_cases.check_network_flow import CheckNetworkFlow
from stagegate.application.use_cases.rollout_deployment import RolloutDeployment
from stagegate.domain.ports.metrics_port import MetricsPort
from stagegate.domain.ports.platform_port import PlatformPort
from stagegate.infrastructure.adapters.http_health_adapter import HttpHealthAdapter
from stagegate.infrastructure.adapters.kubectl_adapter import KubectlAdapter, KubectlRunner
from stagegate.infrastructure.adapters.kubectl_metrics_adapter import KubectlMetricsAdapter
from stagegate.infrastructure.adapters.simulated_platform import (
    SimulatedHealthCheck,
    SimulatedPlatform,
    StaticMetricsSource,
)
from stagegate.infrastructure.config import StagegateConfig
from stagegate.infrastructure.event_bus import EventBus
from stagegate.infrastructure.manifests.loader import YamlManifestSource
from stagegate.infrastructure.repositories.sqlite_repository import SQLiteRepository
from stagegate.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter


@dataclass
class StagegateContainer:
    """DI container holding all wired dependencies."""

    config: StagegateConfig
    platform: PlatformPort
    metrics: MetricsPort
    manifest_source: YamlManifestSource
    event_bus: EventBus
    repository: Optional[SQLiteRepository]
    sequencer: StageSequencer
    rollout: RolloutDeployment
    autoscaler: AutoscaleController
    network_check: CheckNetworkFlow
    telemetry: OTELExporter

    def close(self) -> None:
        if self.repository is not None:
            self.repository.close()


def create_container(
    config: Optional[StagegateConfig] = None,
    simulate: Optional[bool] = None,
    persist: bool = True,
) -> StagegateContainer:
    """Create and wire all dependencies."""
    config = config or StagegateConfig()
    if simulate is None:
        simulate = config.platform.simulate

    if simulate:
        platform = SimulatedPlatform()
        metrics = StaticMetricsSource()
        health = SimulatedHealthCheck()
    else:
        runner = KubectlRunner(
            config.platform.kubectl_path,
            config.platform.context,
            config.platform.command_timeout,
        )
        platform = KubectlAdapter(runner)
        metrics = KubectlMetricsAdapter(runner)
        health = HttpHealthAdapter()

    repository = None
    if persist:
        repository = SQLiteRepository(config.storage.db_path)
        repository.connect()

    event_bus = EventBus()
    telemetry = OTELExporter(
        OTELConfig(
            endpoint=config.telemetry.endpoint,
            service_name=config.telemetry.service_name,
            environment=config.telemetry.environment,
            insecure=config.telemetry.insecure,
        )
    )
    event_bus.subscribe_all(telemetry.handle_event)
    manifest_source = YamlManifestSource(
        autoscale_tolerance=config.autoscale.tolerance,
        autoscale_cooldown=timedelta(seconds=config.autoscale.cooldown_seconds),
    )
    prober = ReadinessProber(
        config.probe.initial_interval,
        config.probe.max_interval,
        config.probe.multiplier,
    )
    sequencer = StageSequencer(
        ReadinessChecks(platform, health),
        prober=prober,
        event_bus=event_bus,
        default_timeout=config.rollout.default_timeout,
    )

    return StagegateContainer(
        config=config,
        platform=platform,
        metrics=metrics,
        manifest_source=manifest_source,
        event_bus=event_bus,
        repository=repository,
        sequencer=sequencer,
        rollout=RolloutDeployment(manifest_source, sequencer, repository),
        autoscaler=AutoscaleController(metrics, platform, event_bus, repository),
        network_check=CheckNetworkFlow(manifest_source),
        telemetry=telemetry,
    )
