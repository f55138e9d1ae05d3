"""
Autoscale Policy

Architectural Intent:
- Pure decision function of the autoscale controller plus its cooldown state machine
- Scaling law: desired = ceil(current * observed / target), clamped to [min, max]
- Several metrics are evaluated independently; the largest desired count wins
- Scale-up applies immediately; scale-down is suppressed while cooling down

Design Decisions:
- A tick without any usable reading is skipped and keeps the replica count;
  a missing metric is never read as zero utilization
- A metric without a usable reading blocks scale-down; the remaining metrics
  can still scale up, since the maximum over all metrics can only be higher
- Cooldown binds every scale-down, including one that corrects a count above
  max_replicas; huge readings saturate at max_replicas
"""

from __future__ import annotations
import logging
import math
from datetime import datetime, UTC
from typing import Mapping, Optional

from stagegate.domain.entities.autoscale import (
    AutoscaleSpec,
    MetricKind,
    ScaleAction,
    ScaleDecision,
    ScalerState,
)

logger = logging.getLogger(__name__)


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def desired_replicas(
    current: int,
    observed: float,
    target: float,
    tolerance: float = 0.0,
    upper: Optional[int] = None,
) -> int:
    ratio = observed / target
    if abs(ratio - 1.0) <= tolerance:
        return current
    # round away float noise such as 4.000000000000001 before ceil
    scaled = round(current * ratio, 9)
    if upper is not None and not scaled <= upper:
        # also catches inf from huge readings, which ceil cannot convert
        return upper
    if not math.isfinite(scaled):
        raise OverflowError(f"desired replica count overflows for reading {observed}")
    return math.ceil(scaled)


def _usable(reading: Optional[float]) -> bool:
    return reading is not None and math.isfinite(reading) and reading >= 0


def evaluate(
    spec: AutoscaleSpec,
    readings: Mapping[MetricKind, Optional[float]],
    now: Optional[datetime] = None,
) -> ScaleDecision:
    """Decide and apply the next replica count for one workload."""
    now = now or datetime.now(UTC)
    current = spec.current_replicas

    per_metric: dict[MetricKind, int] = {}
    missing: list[MetricKind] = []
    for target in spec.targets:
        reading = readings.get(target.metric)
        if not _usable(reading):
            logger.debug(
                "Skipping %s reading for %s: %r", target.metric.value, spec.workload, reading
            )
            missing.append(target.metric)
            continue
        per_metric[target.metric] = desired_replicas(
            current, reading, target.target_utilization, spec.tolerance, spec.max_replicas
        )

    if not per_metric:
        return ScaleDecision(
            workload=spec.workload,
            action=ScaleAction.SKIPPED,
            previous_replicas=current,
            replicas=current,
            desired_replicas=current,
            reason="No usable metric readings; keeping current replica count",
        )

    driving_metric = max(per_metric, key=lambda m: per_metric[m])
    desired = per_metric[driving_metric]
    bounded = clamp(desired, spec.min_replicas, spec.max_replicas)

    if missing and bounded <= current:
        # an unread metric may be the one holding replicas up
        return ScaleDecision(
            workload=spec.workload,
            action=ScaleAction.SKIPPED,
            previous_replicas=current,
            replicas=current,
            desired_replicas=desired,
            reason=(
                "No usable " + ", ".join(m.value for m in missing)
                + " reading; keeping current replica count"
            ),
            driving_metric=driving_metric,
            per_metric=per_metric,
        )

    if bounded > current:
        action = ScaleAction.SCALE_UP
        reason = f"{driving_metric.value} pressure: {current} -> {bounded}"
    elif bounded < current:
        if spec.state(now) == ScalerState.COOLING_DOWN:
            remaining = spec.cooldown - (now - spec.last_scale_down_at)
            return ScaleDecision(
                workload=spec.workload,
                action=ScaleAction.SUPPRESSED,
                previous_replicas=current,
                replicas=current,
                desired_replicas=desired,
                reason=(
                    f"Scale-down to {bounded} suppressed; cooling down for "
                    f"{remaining.total_seconds():.0f}s"
                ),
                driving_metric=driving_metric,
                per_metric=per_metric,
            )
        action = ScaleAction.SCALE_DOWN
        reason = f"{driving_metric.value} slack: {current} -> {bounded}"
    else:
        return ScaleDecision(
            workload=spec.workload,
            action=ScaleAction.NONE,
            previous_replicas=current,
            replicas=current,
            desired_replicas=desired,
            reason="Replica count already matches demand",
            driving_metric=driving_metric,
            per_metric=per_metric,
        )

    spec.current_replicas = bounded
    spec.last_scale_at = now
    if action == ScaleAction.SCALE_DOWN:
        spec.last_scale_down_at = now

    return ScaleDecision(
        workload=spec.workload,
        action=action,
        previous_replicas=current,
        replicas=bounded,
        desired_replicas=desired,
        reason=reason,
        driving_metric=driving_metric,
        per_metric=per_metric,
    )


def tick(
    spec: AutoscaleSpec, observed_utilization: float, now: Optional[datetime] = None
) -> int:
    """Single-reading form: the reading is applied to the spec's primary metric."""
    decision = evaluate(spec, {spec.targets[0].metric: observed_utilization}, now)
    return decision.replicas
