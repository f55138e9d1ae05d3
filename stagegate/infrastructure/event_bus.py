"""
Event Bus Infrastructure

Architectural Intent:
- In-memory event bus for rollout and autoscale domain events
- Supports async subscription handlers per event type, plus catch-all handlers
- Handlers run in subscription order; a failing handler propagates to the publisher
"""

import logging
from typing import Callable, Awaitable
from stagegate.domain.events.event_base import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = {}
        self._catch_all: list[Handler] = []

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            logger.debug("Event %s: %s", event.event_type, event.to_dict())
            for handler in self._handlers.get(type(event), []):
                await handler(event)
            for handler in self._catch_all:
                await handler(event)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        self._catch_all.append(handler)
