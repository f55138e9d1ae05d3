"""
Rollout DTOs

Architectural Intent:
- Data Transfer Objects for use case boundaries
- Input validation at the application boundary
- Failure details carry name, stage and last status so the CLI can report
  without inspecting internal state
"""

from dataclasses import dataclass, field
from typing import Optional

from stagegate.domain.entities.rollout_state import RolloutState


@dataclass(frozen=True)
class RolloutRequest:
    manifest_path: str
    namespace: str
    dry_run: bool = False

    def __post_init__(self) -> None:
        if not self.manifest_path:
            raise ValueError("manifest_path cannot be empty")
        if not self.namespace:
            raise ValueError("namespace cannot be empty")


@dataclass(frozen=True)
class FailureDetail:
    name: str
    stage: int
    status: str
    error: str
    last_observed: str = ""
    optional: bool = False

    def __str__(self) -> str:
        text = f"{self.name} (stage {self.stage}, {self.status}): {self.error}"
        if self.last_observed and self.last_observed not in self.error:
            text += f" [last observed: {self.last_observed}]"
        return text


@dataclass(frozen=True)
class RolloutResponse:
    success: bool
    message: str
    rollout_id: str = ""
    ready: tuple[str, ...] = ()
    failures: tuple[FailureDetail, ...] = ()
    pending: tuple[str, ...] = ()
    plan: tuple[tuple[int, tuple[str, ...]], ...] = ()
    state: Optional[RolloutState] = field(default=None, compare=False, repr=False)

    @staticmethod
    def from_state(state: RolloutState) -> "RolloutResponse":
        failures = tuple(
            FailureDetail(
                name=r.name,
                stage=r.stage,
                status=r.status.value,
                error=r.error,
                last_observed=r.last_observed,
                optional=r.optional,
            )
            for r in state.failed
        )
        pending = tuple(
            r.name for r in state.records.values() if not r.status.is_terminal
        )
        if state.succeeded:
            message = f"Rollout settled: {len(state.ready)}/{len(state.records)} resources ready"
        elif state.cancelled:
            message = f"Rollout cancelled in stage {state.failed_stage}"
        else:
            message = f"Rollout aborted: {state.aborted_reason}"
        return RolloutResponse(
            success=state.succeeded,
            message=message,
            rollout_id=state.rollout_id,
            ready=tuple(state.ready),
            failures=failures,
            pending=pending,
            state=state,
        )
