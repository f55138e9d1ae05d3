"""
Simulated Platform

Architectural Intent:
- In-memory PlatformPort, MetricsPort and HealthCheckPort for --simulate runs and tests
- Resources become ready after a configurable number of observations
- Records every apply and scale call so behaviour can be asserted on

Design Decisions:
- Deterministic: no randomness, no wall-clock dependence
- Rejections and never-ready resources are configured up front by name
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Iterable, Mapping, Optional

from stagegate.domain.entities.autoscale import MetricKind
from stagegate.domain.entities.resource_spec import ReadinessKind, ResourceSpec
from stagegate.domain.errors import ApplyError, MetricUnavailable
from stagegate.domain.ports.metrics_port import MetricsPort
from stagegate.domain.ports.platform_port import PlatformPort
from stagegate.domain.value_objects.observation import ReadinessResult, ResourceObservation

logger = logging.getLogger(__name__)


@dataclass
class SimulatedResource:
    spec: ResourceSpec
    fingerprint: str
    replicas: int
    observations: int = 0
    applied_at: list[datetime] = field(default_factory=list)


class SimulatedPlatform(PlatformPort):
    def __init__(
        self,
        ready_after: Optional[Mapping[str, int]] = None,
        default_ready_after: int = 0,
        rejected: Optional[Mapping[str, str]] = None,
        never_ready: Iterable[str] = (),
        apply_delay: float = 0.0,
    ):
        self.ready_after = dict(ready_after or {})
        self.default_ready_after = default_ready_after
        self.rejected = dict(rejected or {})
        self.never_ready = set(never_ready)
        self.apply_delay = apply_delay
        self.resources: dict[str, SimulatedResource] = {}
        self.apply_calls: list[str] = []
        self.scale_calls: list[tuple[str, int]] = []
        self._replicas: dict[tuple[str, str], int] = {}

    @staticmethod
    def _declared_replicas(spec: ResourceSpec) -> int:
        replicas = (spec.payload.get("spec") or {}).get("replicas")
        if replicas is None:
            return 1 if spec.readiness.kind == ReadinessKind.REPLICAS else 0
        return int(replicas)

    @staticmethod
    def _workload_key(spec: ResourceSpec) -> tuple[str, str]:
        return spec.namespace, spec.name

    async def apply(self, spec: ResourceSpec) -> None:
        self.apply_calls.append(spec.name)
        if self.apply_delay:
            await asyncio.sleep(self.apply_delay)
        if spec.name in self.rejected:
            raise ApplyError(spec.name, self.rejected[spec.name])
        replicas = self._declared_replicas(spec)
        resource = self.resources.get(spec.name)
        if resource is None:
            resource = SimulatedResource(spec, spec.fingerprint, replicas)
            self.resources[spec.name] = resource
        else:
            resource.spec = spec
            resource.fingerprint = spec.fingerprint
            resource.replicas = replicas
            resource.observations = 0
        resource.applied_at.append(datetime.now(UTC))
        self._replicas[self._workload_key(spec)] = replicas
        logger.info("[simulated] applied %s", spec.name, extra={"resource": spec.name})

    def is_ready(self, name: str) -> bool:
        resource = self.resources.get(name)
        if resource is None or name in self.never_ready:
            return False
        return resource.observations > self.ready_after.get(name, self.default_ready_after)

    async def observe(self, spec: ResourceSpec) -> ResourceObservation:
        resource = self.resources.get(spec.name)
        if resource is None:
            return ResourceObservation.missing()
        resource.observations += 1
        replicas = self._replicas.get(self._workload_key(spec), resource.replicas)
        ready = self.is_ready(spec.name)
        return ResourceObservation(
            exists=True,
            fingerprint=resource.fingerprint,
            desired_replicas=replicas,
            ready_replicas=replicas if ready else 0,
            ready=ready,
        )

    def _find(self, workload: str, namespace: str, kind: str) -> tuple[str, str]:
        key = (namespace, f"{kind}/{workload}".lower())
        if key not in self._replicas:
            raise ApplyError(f"{kind}/{workload}", "not found")
        return key

    async def get_replicas(self, workload: str, namespace: str, kind: str = "deployment") -> int:
        return self._replicas[self._find(workload, namespace, kind)]

    async def scale(
        self, workload: str, namespace: str, replicas: int, kind: str = "deployment"
    ) -> None:
        key = self._find(workload, namespace, kind)
        self._replicas[key] = replicas
        self.scale_calls.append((workload, replicas))
        logger.info("[simulated] scaled %s/%s to %d", kind, workload, replicas,
                    extra={"workload": workload})

    def seed_workload(self, workload: str, namespace: str, replicas: int,
                      kind: str = "deployment") -> None:
        """Registers a running workload without applying a resource."""
        self._replicas[(namespace, f"{kind}/{workload}".lower())] = replicas


class StaticMetricsSource(MetricsPort):
    """Utilization readings set by hand; unknown readings are unavailable."""

    def __init__(self, readings: Optional[Mapping[tuple[str, MetricKind], float]] = None):
        self.readings: dict[tuple[str, MetricKind], float] = dict(readings or {})

    def set(self, workload: str, metric: MetricKind, value: float) -> None:
        self.readings[(workload, metric)] = value

    async def read_utilization(
        self, workload: str, namespace: str, metric: MetricKind
    ) -> float:
        try:
            return self.readings[(workload, metric)]
        except KeyError:
            raise MetricUnavailable(workload, metric.value, "no reading")


class SimulatedHealthCheck:
    """HealthCheckPort stand-in: every endpoint is healthy unless listed as failing."""

    def __init__(self, failing: Iterable[str] = ()):
        self.failing = set(failing)
        self.checked: list[str] = []

    async def check(self, url: str, timeout: float = 5.0) -> ReadinessResult:
        self.checked.append(url)
        if url in self.failing:
            return ReadinessResult.unhealthy(f"{url} returned HTTP 503")
        return ReadinessResult.healthy(f"{url} returned HTTP 200")
