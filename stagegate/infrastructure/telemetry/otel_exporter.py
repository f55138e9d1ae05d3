"""
OpenTelemetry Exporter for stagegate

Architectural Intent:
- Exports rollout and autoscale telemetry to OTLP-compatible backends
- Subscribes to the event bus; the domain and application layers stay unaware of it
- Metrics are buffered locally as well (bounded, newest kept), so a run without
  an endpoint can still be inspected

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, Optional
from urllib.parse import urlparse
import logging

from stagegate.domain.entities.autoscale import ReplicasScaledEvent
from stagegate.domain.entities.rollout_state import (
    ResourceFailedEvent,
    ResourceReadyEvent,
    RolloutAbortedEvent,
    RolloutCompletedEvent,
    StageSettledEvent,
)
from stagegate.domain.events.event_base import DomainEvent

logger = logging.getLogger(__name__)


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "stagegate"
    environment: str = "development"
    insecure: bool = False

    def __post_init__(self) -> None:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            is_localhost = parsed.hostname in ("localhost", "127.0.0.1", "::1")
            if parsed.scheme == "http" and not is_localhost and not self.insecure:
                raise ValueError(
                    f"Non-localhost HTTP endpoint '{self.endpoint}' requires "
                    "insecure=True or use https://."
                )


class OTELExporter:
    """
    OpenTelemetry exporter for rollouts and autoscale loops.

    Records one gauge per metric name and a span per rollout. Without an
    endpoint every call still works and only fills the local buffer.
    """

    def __init__(self, config: OTELConfig, max_buffered: int = 1000):
        self.config = config
        self._initialized = False
        # oldest entries drop first during long autoscale runs
        self._metrics_buffer: deque[dict[str, Any]] = deque(maxlen=max_buffered)
        self._meter: Any = None
        self._gauges: dict[str, Any] = {}

    @property
    def enabled(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Initialize OpenTelemetry SDK and exporters."""
        if self._initialized:
            return
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return

        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        resource = Resource(
            attributes={
                SERVICE_NAME: self.config.service_name,
                "environment": self.config.environment,
            }
        )
        try:
            provider = TracerProvider(resource=resource)
            provider.add_span_processor(
                BatchSpanProcessor(
                    OTLPSpanExporter(endpoint=self.config.endpoint, insecure=self.config.insecure)
                )
            )
            trace.set_tracer_provider(provider)

            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=self.config.endpoint, insecure=self.config.insecure)
            )
            metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))
            self._meter = metrics.get_meter(__name__)
        except Exception as e:
            logger.error("Failed to initialize OTEL: %s", e)
            return
        self._initialized = True
        logger.info("Exporting telemetry to %s", self.config.endpoint)

    def _get_gauge(self, name: str, unit: str = "") -> Any:
        if name not in self._gauges and self._meter:
            self._gauges[name] = self._meter.create_gauge(name, unit=unit)
        return self._gauges.get(name)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        """Record a metric value."""
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attributes or {},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )
        if self._initialized:
            gauge = self._get_gauge(name, unit)
            if gauge:
                gauge.set(value, attributes=attributes or {})

    @property
    def buffered(self) -> list[dict[str, Any]]:
        return list(self._metrics_buffer)

    async def handle_event(self, event: DomainEvent) -> None:
        """Event bus subscriber translating domain events into metrics."""
        if isinstance(event, ResourceReadyEvent):
            self.record_metric(
                "stagegate.resource.ready", 1.0,
                attributes={
                    "resource": event.resource,
                    "stage": str(event.stage),
                    "skipped_apply": str(event.skipped_apply),
                },
            )
        elif isinstance(event, ResourceFailedEvent):
            self.record_metric(
                "stagegate.resource.failed", 1.0,
                attributes={
                    "resource": event.resource,
                    "stage": str(event.stage),
                    "optional": str(event.optional),
                },
            )
        elif isinstance(event, StageSettledEvent):
            self.record_metric(
                "stagegate.stage.ready", float(len(event.ready)),
                attributes={"stage": str(event.stage)},
            )
        elif isinstance(event, RolloutCompletedEvent):
            self.record_metric(
                "stagegate.rollout.completed", float(event.resources),
                attributes={"rollout_id": event.aggregate_id},
            )
        elif isinstance(event, RolloutAbortedEvent):
            self.record_metric(
                "stagegate.rollout.aborted", 1.0,
                attributes={"rollout_id": event.aggregate_id, "stage": str(event.stage)},
            )
        elif isinstance(event, ReplicasScaledEvent):
            self.record_metric(
                "stagegate.workload.replicas", float(event.replicas),
                attributes={"workload": event.workload},
            )

    def start_span(
        self,
        name: str,
        attributes: Optional[dict[str, str]] = None,
    ) -> Optional[Any]:
        """Start a tracing span."""
        if not self._initialized:
            return None

        from opentelemetry import trace

        tracer = trace.get_tracer(__name__)
        return tracer.start_span(name, attributes=attributes or {})

    def end_span(self, span: Any) -> None:
        """End a tracing span."""
        if span:
            span.end()

    async def export(self) -> None:
        """Flush the local buffer; the SDK exports on its own schedule."""
        exported_count = len(self._metrics_buffer)
        self._metrics_buffer.clear()
        if exported_count and self._initialized:
            logger.debug("Flushed %d buffered metrics", exported_count)
