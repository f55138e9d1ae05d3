"""
Error Taxonomy

Architectural Intent:
- Single hierarchy for every failure the rollout engine can surface
- Configuration-time errors abort before any platform call
- Run-time errors carry enough context (resource, stage, last state) to diagnose
"""

from __future__ import annotations
from typing import Optional


class StagegateError(Exception):
    """Base class for all stagegate errors."""


class ConfigurationError(StagegateError):
    """Invalid resource set: cycles, forward references, missing timeouts."""


class PolicyEvaluationError(ConfigurationError):
    """Malformed selector or port in a network rule."""


class ApplyError(StagegateError):
    """The platform rejected a resource payload."""

    def __init__(self, resource: str, reason: str) -> None:
        super().__init__(f"{resource}: {reason}")
        self.resource = resource
        self.reason = reason


class ReadinessTimeout(ApplyError):
    """A resource did not become ready before its deadline."""

    def __init__(
        self, resource: str, timeout: float, last_observed: Optional[str] = None
    ) -> None:
        reason = f"not ready after {timeout:g}s"
        if last_observed:
            reason += f" (last observed: {last_observed})"
        super().__init__(resource, reason)
        self.timeout = timeout
        self.last_observed = last_observed


class RolloutCancelled(StagegateError):
    """The rollout was cancelled while waiting on readiness."""


class MetricUnavailable(StagegateError):
    """A utilization reading could not be obtained."""

    def __init__(self, workload: str, metric: str, reason: str = "") -> None:
        message = f"{metric} utilization unavailable for {workload}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.workload = workload
        self.metric = metric
        self.reason = reason
