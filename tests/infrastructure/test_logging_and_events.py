"""Tests for structured logging and the in-memory event bus."""

import json
import logging
import sys

import pytest
from unittest.mock import AsyncMock

from stagegate.domain.entities.rollout_state import ResourceReadyEvent, RolloutCompletedEvent
from stagegate.infrastructure.event_bus import EventBus
from stagegate.infrastructure.logging import JSONFormatter, configure_logging


class TestJSONFormatter:
    def _record(self, **extra):
        record = logging.LogRecord(
            "stagegate.test", logging.INFO, __file__, 1, "applied %s", ("cm/a",), None
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(self._record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "stagegate.test"
        assert entry["message"] == "applied cm/a"
        assert "timestamp" in entry

    def test_context_extras_promoted(self):
        entry = json.loads(JSONFormatter().format(self._record(resource="cm/a", stage=2)))
        assert entry["resource"] == "cm/a"
        assert entry["stage"] == 2
        assert "workload" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestConfigureLogging:
    def test_installs_single_handler(self):
        configure_logging(logging.DEBUG)
        configure_logging(logging.INFO, json_format=True)
        root = logging.getLogger("stagegate")
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)


class TestEventBus:
    @pytest.mark.asyncio
    async def test_typed_subscription(self):
        bus = EventBus()
        ready = AsyncMock()
        completed = AsyncMock()
        bus.subscribe(ResourceReadyEvent, ready)
        bus.subscribe(RolloutCompletedEvent, completed)

        event = ResourceReadyEvent("r1", resource="cm/a", stage=0)
        await bus.publish([event])

        ready.assert_awaited_once_with(event)
        completed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_catch_all_sees_everything(self):
        bus = EventBus()
        seen = AsyncMock()
        bus.subscribe_all(seen)

        await bus.publish([
            ResourceReadyEvent("r1", resource="cm/a", stage=0),
            RolloutCompletedEvent("r1", resources=1),
        ])

        assert seen.await_count == 2

    @pytest.mark.asyncio
    async def test_handler_error_propagates(self):
        bus = EventBus()
        bus.subscribe_all(AsyncMock(side_effect=RuntimeError("handler failed")))
        with pytest.raises(RuntimeError):
            await bus.publish([RolloutCompletedEvent("r1", resources=0)])

    def test_event_serializes(self):
        event = ResourceReadyEvent("r1", resource="cm/a", stage=0)
        data = event.to_dict()
        assert data["event_type"] == "ResourceReadyEvent"
        assert data["resource"] == "cm/a"
