"""
stagegate Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for rollout and autoscale observability
"""

from stagegate.infrastructure.telemetry.otel_exporter import (
    OTELConfig,
    OTELExporter,
)

__all__ = [
    "OTELConfig",
    "OTELExporter",
]
