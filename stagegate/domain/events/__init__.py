"""
Domain Events Package

Architectural Intent:
- Base type for events raised by the rollout and autoscale aggregates
- Concrete events live beside the aggregate that raises them
- Events are the primary mechanism for cross-boundary communication
"""

from stagegate.domain.events.event_base import DomainEvent

__all__ = ["DomainEvent"]
