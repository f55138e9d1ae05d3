"""
Autoscale Loop Use Case

Architectural Intent:
- Periodic, indefinitely repeating control loop per workload
- Reads utilization through the metrics port, decides via the autoscale policy,
  and scales through the platform port only when the replica count changes
- Ticks for one workload are serialized; different workloads run independently
"""

from __future__ import annotations
import asyncio
import logging
from datetime import datetime, UTC
from typing import Callable, Iterable, Optional

from stagegate.domain.entities.autoscale import (
    AutoscaleSpec,
    MetricKind,
    ReplicasScaledEvent,
    ScaleAction,
    ScaleDecision,
)
from stagegate.domain.errors import ApplyError, MetricUnavailable
from stagegate.domain.ports.event_bus_port import EventBusPort
from stagegate.domain.ports.metrics_port import MetricsPort
from stagegate.domain.ports.platform_port import PlatformPort
from stagegate.domain.services.autoscale_policy import evaluate

logger = logging.getLogger(__name__)


class AutoscaleController:
    def __init__(
        self,
        metrics: MetricsPort,
        platform: PlatformPort,
        event_bus: Optional[EventBusPort] = None,
        repository=None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.metrics = metrics
        self.platform = platform
        self.event_bus = event_bus
        self.repository = repository
        self.clock = clock
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, spec: AutoscaleSpec) -> asyncio.Lock:
        key = (spec.namespace, spec.workload)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def _read(self, spec: AutoscaleSpec) -> dict[MetricKind, float]:
        readings: dict[MetricKind, float] = {}
        for target in spec.targets:
            try:
                readings[target.metric] = await self.metrics.read_utilization(
                    spec.workload, spec.namespace, target.metric
                )
            except MetricUnavailable as e:
                logger.warning("%s", e, extra={"workload": spec.workload})
        return readings

    async def tick(self, spec: AutoscaleSpec) -> ScaleDecision:
        async with self._lock_for(spec):
            readings = await self._read(spec)
            snapshot = (spec.current_replicas, spec.last_scale_at, spec.last_scale_down_at)
            decision = evaluate(spec, readings, self.clock())

            if decision.changed:
                try:
                    await self.platform.scale(
                        spec.workload, spec.namespace, decision.replicas, spec.kind
                    )
                except ApplyError as e:
                    spec.current_replicas, spec.last_scale_at, spec.last_scale_down_at = snapshot
                    logger.error(
                        "Scaling %s to %d failed: %s", spec.workload, decision.replicas,
                        e.reason, extra={"workload": spec.workload},
                    )
                    return ScaleDecision(
                        workload=spec.workload,
                        action=ScaleAction.SKIPPED,
                        previous_replicas=decision.previous_replicas,
                        replicas=decision.previous_replicas,
                        desired_replicas=decision.desired_replicas,
                        reason=f"scale failed: {e.reason}",
                        driving_metric=decision.driving_metric,
                        per_metric=decision.per_metric,
                    )
                logger.info("%s: %s", spec.workload, decision.reason,
                            extra={"workload": spec.workload})
                if self.event_bus is not None:
                    await self.event_bus.publish([
                        ReplicasScaledEvent(
                            spec.workload,
                            workload=spec.workload,
                            previous_replicas=decision.previous_replicas,
                            replicas=decision.replicas,
                            reason=decision.reason,
                        )
                    ])
            else:
                logger.debug("%s: %s", spec.workload, decision.reason,
                             extra={"workload": spec.workload})

            if self.repository is not None:
                self.repository.record_scale(decision, spec.namespace)
            return decision

    async def sync_replicas(self, spec: AutoscaleSpec) -> None:
        """Seeds the spec's replica count from the platform."""
        try:
            spec.current_replicas = await self.platform.get_replicas(
                spec.workload, spec.namespace, spec.kind
            )
        except ApplyError as e:
            logger.warning(
                "Could not read replicas of %s, keeping %d: %s",
                spec.workload, spec.current_replicas, e.reason,
                extra={"workload": spec.workload},
            )

    async def run_workload(
        self,
        spec: AutoscaleSpec,
        interval_seconds: float,
        cancel: Optional[asyncio.Event] = None,
        iterations: Optional[int] = None,
    ) -> None:
        await self.sync_replicas(spec)
        count = 0
        while cancel is None or not cancel.is_set():
            await self.tick(spec)
            count += 1
            if iterations is not None and count >= iterations:
                break
            if cancel is None:
                await asyncio.sleep(interval_seconds)
                continue
            try:
                await asyncio.wait_for(cancel.wait(), timeout=interval_seconds)
            except TimeoutError:
                pass

    async def execute(
        self,
        specs: Iterable[AutoscaleSpec],
        interval_seconds: float = 15.0,
        run_once: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        specs = list(specs)
        if not specs:
            logger.warning("No autoscaled workloads found")
            return
        logger.info("Autoscaling %d workload(s) every %ss", len(specs), interval_seconds)
        await asyncio.gather(
            *(
                self.run_workload(
                    spec, interval_seconds, cancel, iterations=1 if run_once else None
                )
                for spec in specs
            )
        )
