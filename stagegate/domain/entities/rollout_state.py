"""
Rollout State Module

Architectural Intent:
- RolloutState is the consistency boundary for one rollout run
- Per-resource status only moves forward; FAILED and READY are terminal
- Every transition is timestamped so ordering guarantees can be audited
- Domain events are collected here and dispatched by the application layer

Domain Events:
- ResourceAppliedEvent: payload submitted to the platform
- ResourceReadyEvent: readiness predicate satisfied
- ResourceFailedEvent: apply error, readiness timeout or unmet dependency
- StageSettledEvent: every resource of a stage reached a terminal status
- RolloutCompletedEvent / RolloutAbortedEvent: final outcome
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from stagegate.domain.entities.resource_spec import ResourceSpec
from stagegate.domain.events.event_base import DomainEvent


class ResourceStatus(str, Enum):
    PENDING = "pending"
    APPLYING = "applying"
    WAITING_READY = "waiting_ready"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ResourceStatus.READY, ResourceStatus.FAILED)


_FORWARD_ORDER = {
    ResourceStatus.PENDING: 0,
    ResourceStatus.APPLYING: 1,
    ResourceStatus.WAITING_READY: 2,
    ResourceStatus.READY: 3,
}


@dataclass(frozen=True)
class ResourceAppliedEvent(DomainEvent):
    resource: str = ""
    stage: int = 0


@dataclass(frozen=True)
class ResourceReadyEvent(DomainEvent):
    resource: str = ""
    stage: int = 0
    skipped_apply: bool = False


@dataclass(frozen=True)
class ResourceFailedEvent(DomainEvent):
    resource: str = ""
    stage: int = 0
    error: str = ""
    optional: bool = False


@dataclass(frozen=True)
class StageSettledEvent(DomainEvent):
    stage: int = 0
    ready: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()


@dataclass(frozen=True)
class RolloutCompletedEvent(DomainEvent):
    resources: int = 0


@dataclass(frozen=True)
class RolloutAbortedEvent(DomainEvent):
    reason: str = ""
    stage: Optional[int] = None


@dataclass
class ResourceRecord:
    """Mutable per-resource progress inside a RolloutState."""

    name: str
    kind: str
    stage: int
    optional: bool = False
    status: ResourceStatus = ResourceStatus.PENDING
    timestamps: dict[ResourceStatus, datetime] = field(default_factory=dict)
    error: str = ""
    last_observed: str = ""
    skipped_apply: bool = False

    def at(self, status: ResourceStatus) -> Optional[datetime]:
        return self.timestamps.get(status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "stage": self.stage,
            "optional": self.optional,
            "status": self.status.value,
            "timestamps": {s.value: t.isoformat() for s, t in self.timestamps.items()},
            "error": self.error,
            "last_observed": self.last_observed,
            "skipped_apply": self.skipped_apply,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ResourceRecord":
        return ResourceRecord(
            name=data["name"],
            kind=data["kind"],
            stage=int(data["stage"]),
            optional=bool(data.get("optional", False)),
            status=ResourceStatus(data["status"]),
            timestamps={
                ResourceStatus(s): datetime.fromisoformat(t)
                for s, t in data.get("timestamps", {}).items()
            },
            error=data.get("error", ""),
            last_observed=data.get("last_observed", ""),
            skipped_apply=bool(data.get("skipped_apply", False)),
        )


class RolloutState:
    """Aggregate root tracking every resource of one rollout."""

    def __init__(
        self,
        namespace: str = "",
        rollout_id: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.rollout_id = rollout_id or uuid.uuid4().hex[:12]
        self.namespace = namespace
        self._clock = clock
        self.started_at: datetime = clock()
        self.finished_at: Optional[datetime] = None
        self.records: dict[str, ResourceRecord] = {}
        self.aborted_reason: Optional[str] = None
        self.failed_stage: Optional[int] = None
        self.cancelled = False
        self._events: list[DomainEvent] = []

    @classmethod
    def for_specs(
        cls, specs: Iterable[ResourceSpec], namespace: str = "", **kwargs: Any
    ) -> "RolloutState":
        state = cls(namespace=namespace, **kwargs)
        for spec in specs:
            state.track(spec)
        return state

    def track(self, spec: ResourceSpec) -> ResourceRecord:
        record = ResourceRecord(
            name=spec.name, kind=spec.kind, stage=spec.stage, optional=spec.optional
        )
        record.timestamps[ResourceStatus.PENDING] = self._clock()
        self.records[spec.name] = record
        return record

    # -- Transitions ---------------------------------------------------------

    def _transition(self, name: str, status: ResourceStatus) -> ResourceRecord:
        record = self.records[name]
        current = record.status
        if current.is_terminal:
            raise ValueError(
                f"{name} is {current.value}; cannot move to {status.value}"
            )
        if status != ResourceStatus.FAILED and _FORWARD_ORDER[status] <= _FORWARD_ORDER[current]:
            raise ValueError(
                f"{name} cannot move backwards from {current.value} to {status.value}"
            )
        record.status = status
        record.timestamps[status] = self._clock()
        return record

    def mark_applying(self, name: str) -> None:
        self._transition(name, ResourceStatus.APPLYING)

    def mark_waiting(self, name: str) -> None:
        record = self._transition(name, ResourceStatus.WAITING_READY)
        self._events.append(
            ResourceAppliedEvent(self.rollout_id, resource=name, stage=record.stage)
        )

    def mark_ready(self, name: str, observed: str = "", skipped_apply: bool = False) -> None:
        record = self._transition(name, ResourceStatus.READY)
        record.last_observed = observed
        record.skipped_apply = skipped_apply
        self._events.append(
            ResourceReadyEvent(
                self.rollout_id, resource=name, stage=record.stage,
                skipped_apply=skipped_apply,
            )
        )

    def mark_failed(self, name: str, error: str, observed: str = "") -> None:
        record = self._transition(name, ResourceStatus.FAILED)
        record.error = error
        if observed:
            record.last_observed = observed
        self._events.append(
            ResourceFailedEvent(
                self.rollout_id, resource=name, stage=record.stage,
                error=error, optional=record.optional,
            )
        )

    def settle_stage(self, stage: int) -> None:
        members = [r for r in self.records.values() if r.stage == stage]
        self._events.append(
            StageSettledEvent(
                self.rollout_id,
                stage=stage,
                ready=tuple(r.name for r in members if r.status == ResourceStatus.READY),
                failed=tuple(r.name for r in members if r.status == ResourceStatus.FAILED),
            )
        )

    def complete(self) -> None:
        self.finished_at = self._clock()
        self._events.append(
            RolloutCompletedEvent(self.rollout_id, resources=len(self.records))
        )

    def abort(self, reason: str, stage: Optional[int] = None, cancelled: bool = False) -> None:
        self.aborted_reason = reason
        self.failed_stage = stage
        self.cancelled = cancelled
        self.finished_at = self._clock()
        self._events.append(RolloutAbortedEvent(self.rollout_id, reason=reason, stage=stage))

    # -- Queries -------------------------------------------------------------

    def status_of(self, name: str) -> ResourceStatus:
        return self.records[name].status

    def is_ready(self, name: str) -> bool:
        record = self.records.get(name)
        return record is not None and record.status == ResourceStatus.READY

    def with_status(self, status: ResourceStatus) -> list[ResourceRecord]:
        return [r for r in self.records.values() if r.status == status]

    @property
    def ready(self) -> list[str]:
        return [r.name for r in self.with_status(ResourceStatus.READY)]

    @property
    def failed(self) -> list[ResourceRecord]:
        return self.with_status(ResourceStatus.FAILED)

    @property
    def succeeded(self) -> bool:
        """True when the rollout settled without a required resource failing."""
        if self.aborted_reason is not None or self.finished_at is None:
            return False
        return all(
            r.status == ResourceStatus.READY or (r.optional and r.status == ResourceStatus.FAILED)
            for r in self.records.values()
        )

    def pull_events(self) -> list[DomainEvent]:
        events, self._events = self._events, []
        return events

    def to_dict(self) -> dict[str, Any]:
        return {
            "rollout_id": self.rollout_id,
            "namespace": self.namespace,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "aborted_reason": self.aborted_reason,
            "failed_stage": self.failed_stage,
            "cancelled": self.cancelled,
            "succeeded": self.succeeded,
            "resources": [r.to_dict() for r in self.records.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RolloutState":
        state = cls(namespace=data.get("namespace", ""), rollout_id=data["rollout_id"])
        state.started_at = datetime.fromisoformat(data["started_at"])
        if data.get("finished_at"):
            state.finished_at = datetime.fromisoformat(data["finished_at"])
        state.aborted_reason = data.get("aborted_reason")
        state.failed_stage = data.get("failed_stage")
        state.cancelled = bool(data.get("cancelled", False))
        for item in data.get("resources", []):
            record = ResourceRecord.from_dict(item)
            state.records[record.name] = record
        return state

    def __repr__(self) -> str:
        return (
            f"RolloutState(rollout_id={self.rollout_id}, namespace={self.namespace}, "
            f"ready={len(self.ready)}/{len(self.records)}, "
            f"aborted_reason={self.aborted_reason})"
        )
