"""
Readiness Probing Module

Architectural Intent:
- Cancellable wait primitive: predicate check + bounded retry loop with backoff
- Capped exponential backoff between checks (default 1s doubling to 10s)
- Cancellation is a first-class input (asyncio.Event) and also honours task cancellation

Failure Semantics:
- A predicate that raises counts as "not ready"; the error becomes the last observation
- On deadline a ReadinessTimeout carries the last observed state for diagnostics
"""

from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from stagegate.domain.entities.resource_spec import ReadinessKind, ResourceSpec
from stagegate.domain.errors import ReadinessTimeout, RolloutCancelled
from stagegate.domain.ports.health_check_port import HealthCheckPort
from stagegate.domain.ports.platform_port import PlatformPort
from stagegate.domain.services.readiness_predicates import evaluate_observation
from stagegate.domain.value_objects.observation import ReadinessResult, ResourceObservation

logger = logging.getLogger(__name__)

ReadinessCheck = Callable[[], Awaitable[ReadinessResult]]


class ReadinessChecks:
    """Binds each readiness kind to the platform and health-check ports."""

    def __init__(
        self, platform: PlatformPort, health: Optional[HealthCheckPort] = None
    ) -> None:
        self.platform = platform
        self.health = health

    async def check(
        self, spec: ResourceSpec, observation: Optional[ResourceObservation] = None
    ) -> ReadinessResult:
        if observation is None:
            observation = await self.platform.observe(spec)
        result = evaluate_observation(spec.readiness, observation)
        if not result.ready or spec.readiness.kind != ReadinessKind.HTTP:
            return result
        if self.health is None:
            return ReadinessResult.unhealthy("no health checker configured for http probe")
        return await self.health.check(spec.readiness.url)

    def for_spec(self, spec: ResourceSpec) -> ReadinessCheck:
        return lambda: self.check(spec)


class ReadinessProber:
    def __init__(
        self,
        initial_interval: float = 1.0,
        max_interval: float = 10.0,
        multiplier: float = 2.0,
    ) -> None:
        if initial_interval <= 0 or max_interval < initial_interval or multiplier < 1:
            raise ValueError(
                "Backoff requires 0 < initial_interval <= max_interval and multiplier >= 1"
            )
        self.initial_interval = initial_interval
        self.max_interval = max_interval
        self.multiplier = multiplier

    async def wait_ready(
        self,
        resource: str,
        check: ReadinessCheck,
        timeout: float,
        cancel: Optional[asyncio.Event] = None,
    ) -> ReadinessResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        interval = self.initial_interval
        last_observed = "never checked"
        attempt = 0

        while True:
            if cancel is not None and cancel.is_set():
                raise RolloutCancelled(f"Readiness wait for {resource} cancelled")

            attempt += 1
            remaining = deadline - loop.time()
            try:
                result = await asyncio.wait_for(check(), timeout=max(remaining, 0.001))
            except TimeoutError:
                result = ReadinessResult.unhealthy("readiness check did not return in time")
            except Exception as e:
                result = ReadinessResult.unhealthy(f"check failed: {e}")

            if result.ready:
                logger.debug(
                    "%s ready after %d check(s): %s", resource, attempt, result.detail,
                    extra={"resource": resource},
                )
                return result

            last_observed = result.detail
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ReadinessTimeout(resource, timeout, last_observed)

            logger.debug(
                "%s not ready (%s); next check in %.2fs", resource, last_observed,
                min(interval, remaining), extra={"resource": resource},
            )
            if await self._pause(min(interval, remaining), cancel):
                raise RolloutCancelled(f"Readiness wait for {resource} cancelled")
            interval = min(interval * self.multiplier, self.max_interval)

    @staticmethod
    async def _pause(delay: float, cancel: Optional[asyncio.Event]) -> bool:
        """Sleeps for `delay`; returns True if cancellation was signalled first."""
        if cancel is None:
            await asyncio.sleep(delay)
            return False
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
            return True
        except TimeoutError:
            return False
