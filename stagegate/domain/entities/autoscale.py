"""
Autoscale Model

Architectural Intent:
- AutoscaleSpec is the per-workload state owned by the autoscale controller
- Cooldown state machine: STABLE -> COOLING_DOWN on every scale-down,
  back to STABLE once the cooldown window has elapsed
- ScaleDecision is an immutable record of one tick

Design Decisions:
- Metric kinds are an enum; new kinds only need a member and a metrics adapter
- Default cooldown of 5 minutes matches the usual HPA scale-down stabilization
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from stagegate.domain.events.event_base import DomainEvent

DEFAULT_COOLDOWN = timedelta(minutes=5)


class MetricKind(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"


class ScalerState(str, Enum):
    STABLE = "stable"
    COOLING_DOWN = "cooling_down"


class ScaleAction(str, Enum):
    SCALE_UP = "scale_up"
    SCALE_DOWN = "scale_down"
    NONE = "none"
    SUPPRESSED = "suppressed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class MetricTarget:
    metric: MetricKind
    target_utilization: float

    def __post_init__(self) -> None:
        if self.target_utilization <= 0:
            raise ValueError(
                f"Target utilization must be positive, got {self.target_utilization}"
            )


@dataclass
class AutoscaleSpec:
    workload: str
    targets: tuple[MetricTarget, ...]
    min_replicas: int
    max_replicas: int
    current_replicas: int
    namespace: str = ""
    kind: str = "deployment"
    cooldown: timedelta = DEFAULT_COOLDOWN
    tolerance: float = 0.0
    last_scale_at: Optional[datetime] = None
    last_scale_down_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if isinstance(self.targets, list):
            self.targets = tuple(self.targets)
        if not self.targets:
            raise ValueError(f"Autoscale spec for {self.workload!r} has no metric targets")
        if self.min_replicas < 1:
            raise ValueError(f"min_replicas must be >= 1, got {self.min_replicas}")
        if self.max_replicas < self.min_replicas:
            raise ValueError(
                f"max_replicas ({self.max_replicas}) < min_replicas ({self.min_replicas})"
            )
        if self.tolerance < 0:
            raise ValueError(f"tolerance cannot be negative, got {self.tolerance}")

    def state(self, now: datetime) -> ScalerState:
        if self.last_scale_down_at and now - self.last_scale_down_at < self.cooldown:
            return ScalerState.COOLING_DOWN
        return ScalerState.STABLE

    def target_for(self, metric: MetricKind) -> Optional[MetricTarget]:
        for target in self.targets:
            if target.metric == metric:
                return target
        return None


@dataclass(frozen=True)
class ScaleDecision:
    """Outcome of one autoscale tick."""

    workload: str
    action: ScaleAction
    previous_replicas: int
    replicas: int
    desired_replicas: int
    reason: str
    driving_metric: Optional[MetricKind] = None
    per_metric: dict[MetricKind, int] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.replicas != self.previous_replicas


@dataclass(frozen=True)
class ReplicasScaledEvent(DomainEvent):
    workload: str = ""
    previous_replicas: int = 0
    replicas: int = 0
    reason: str = ""
