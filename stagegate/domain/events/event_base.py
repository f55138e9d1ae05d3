"""
Domain Events Module

Architectural Intent:
- Base class for events raised by the rollout and autoscale aggregates
- Events are immutable and carry the aggregate they belong to
- Aggregates collect events; the application layer dispatches them via the event bus
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, UTC
from typing import Any


@dataclass(frozen=True)
class DomainEvent:
    aggregate_id: str = ""
    occurred_at: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat(), repr=False, kw_only=True
    )

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["event_type"] = self.event_type
        return data
