"""
Stage Sequencer Module

Architectural Intent:
- Staged rollout with readiness gating between stages
- Stage N+1 never starts before every resource of stage N is settled
- Within a stage, resources are applied and probed concurrently (fan-out, join-all)
- Run-time failures are recorded in the RolloutState instead of discarding progress

Parallelization Strategy:
- Apply submissions of one stage run concurrently; they only wait for acceptance
- One readiness wait per submitted resource, gathered before the stage settles
- Failures of required resources stop progression; optional failures do not
"""

from __future__ import annotations
import asyncio
import logging
from typing import Iterable, Optional, Union

from stagegate.application.orchestration.readiness import ReadinessChecks, ReadinessProber
from stagegate.domain.entities.resource_spec import ResourceSpec
from stagegate.domain.entities.rollout_state import RolloutState
from stagegate.domain.errors import (
    ApplyError,
    ConfigurationError,
    ReadinessTimeout,
    RolloutCancelled,
)
from stagegate.domain.ports.event_bus_port import EventBusPort
from stagegate.domain.services.resource_catalog import ResourceCatalog

logger = logging.getLogger(__name__)


class StageSequencer:
    def __init__(
        self,
        checks: ReadinessChecks,
        prober: Optional[ReadinessProber] = None,
        event_bus: Optional[EventBusPort] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        self.checks = checks
        self.platform = checks.platform
        self.prober = prober or ReadinessProber()
        self.event_bus = event_bus
        self.default_timeout = default_timeout

    def plan(
        self, specs: Union[ResourceCatalog, Iterable[ResourceSpec]]
    ) -> list[tuple[int, list[ResourceSpec]]]:
        """Validates the resource set and returns it grouped by stage."""
        catalog = specs if isinstance(specs, ResourceCatalog) else ResourceCatalog(specs)
        self._check_timeouts(catalog)
        return catalog.stages()

    def _check_timeouts(self, catalog: ResourceCatalog) -> None:
        if self.default_timeout is not None:
            return
        missing = [s.name for s in catalog if s.readiness.timeout_seconds is None]
        if missing:
            raise ConfigurationError(
                "No readiness timeout for: " + ", ".join(sorted(missing))
                + " (set one per resource or supply a rollout default)"
            )

    def _timeout_for(self, spec: ResourceSpec) -> float:
        timeout = spec.readiness.timeout_seconds
        return timeout if timeout is not None else self.default_timeout

    async def rollout(
        self,
        specs: Union[ResourceCatalog, Iterable[ResourceSpec]],
        namespace: str = "",
        cancel: Optional[asyncio.Event] = None,
    ) -> RolloutState:
        stages = self.plan(specs)
        state = RolloutState.for_specs(
            (spec for _, members in stages for spec in members), namespace=namespace
        )
        logger.info(
            "Starting rollout %s: %d resources in %d stages",
            state.rollout_id, len(state.records), len(stages),
        )

        current_stage: Optional[int] = None
        try:
            for stage, members in stages:
                current_stage = stage
                if cancel is not None and cancel.is_set():
                    raise RolloutCancelled(f"Rollout cancelled before stage {stage}")

                await self._run_stage(stage, members, state, cancel)
                state.settle_stage(stage)
                await self._publish(state)

                blocking = [r for r in state.failed if r.stage == stage and not r.optional]
                if blocking:
                    names = ", ".join(r.name for r in blocking)
                    logger.error("Stage %d failed: %s", stage, names, extra={"stage": stage})
                    state.abort(f"stage {stage} failed: {names}", stage)
                    break
                logger.info("Stage %d settled", stage, extra={"stage": stage})
            else:
                state.complete()
                logger.info("Rollout %s settled", state.rollout_id)
        except RolloutCancelled as e:
            logger.warning("Rollout %s cancelled: %s", state.rollout_id, e)
            state.abort("cancelled", current_stage, cancelled=True)
        except asyncio.CancelledError:
            state.abort("cancelled", current_stage, cancelled=True)
            await self._publish(state)
            raise

        await self._publish(state)
        return state

    async def _run_stage(
        self,
        stage: int,
        members: list[ResourceSpec],
        state: RolloutState,
        cancel: Optional[asyncio.Event],
    ) -> None:
        logger.info(
            "Stage %d: applying %s", stage, ", ".join(s.name for s in members),
            extra={"stage": stage},
        )
        submitted = await asyncio.gather(*(self._submit(spec, state) for spec in members))
        waiting = [spec for spec, ok in zip(members, submitted) if ok]

        outcomes = await asyncio.gather(
            *(self._await_ready(spec, state, cancel) for spec in waiting),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

    async def _submit(self, spec: ResourceSpec, state: RolloutState) -> bool:
        """Applies one resource; returns True if it needs a readiness wait."""
        unmet = [dep for dep in spec.depends_on if not state.is_ready(dep)]
        if unmet:
            state.mark_failed(spec.name, f"dependencies not ready: {', '.join(unmet)}")
            return False

        try:
            observation = await self.platform.observe(spec)
        except Exception as e:
            logger.debug("Could not observe %s before apply: %s", spec.name, e)
            observation = None

        if observation is not None and observation.exists and observation.fingerprint == spec.fingerprint:
            result = await self.checks.check(spec, observation)
            if result.ready:
                logger.info(
                    "%s already applied and ready; skipping apply", spec.name,
                    extra={"resource": spec.name, "stage": spec.stage},
                )
                state.mark_ready(spec.name, result.detail, skipped_apply=True)
                return False

        state.mark_applying(spec.name)
        try:
            await self.platform.apply(spec)
        except ApplyError as e:
            logger.error("Apply failed for %s: %s", spec.name, e.reason,
                         extra={"resource": spec.name, "stage": spec.stage})
            state.mark_failed(spec.name, e.reason)
            return False
        except Exception as e:
            logger.exception("Unexpected error applying %s", spec.name)
            state.mark_failed(spec.name, f"apply error: {e}")
            return False

        state.mark_waiting(spec.name)
        return True

    async def _await_ready(
        self,
        spec: ResourceSpec,
        state: RolloutState,
        cancel: Optional[asyncio.Event],
    ) -> None:
        try:
            result = await self.prober.wait_ready(
                spec.name, self.checks.for_spec(spec), self._timeout_for(spec), cancel
            )
        except ReadinessTimeout as e:
            logger.error("%s", e, extra={"resource": spec.name, "stage": spec.stage})
            state.mark_failed(spec.name, e.reason, observed=e.last_observed or "")
            return
        state.mark_ready(spec.name, result.detail)
        logger.info("%s ready: %s", spec.name, result.detail,
                    extra={"resource": spec.name, "stage": spec.stage})

    async def _publish(self, state: RolloutState) -> None:
        events = state.pull_events()
        if events and self.event_bus is not None:
            await self.event_bus.publish(events)
