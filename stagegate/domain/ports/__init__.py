"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external collaborators
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from stagegate.domain.ports.platform_port import PlatformPort
from stagegate.domain.ports.metrics_port import MetricsPort
from stagegate.domain.ports.health_check_port import HealthCheckPort
from stagegate.domain.ports.event_bus_port import EventBusPort
from stagegate.domain.ports.manifest_source_port import ManifestSourcePort

__all__ = [
    "PlatformPort",
    "MetricsPort",
    "HealthCheckPort",
    "EventBusPort",
    "ManifestSourcePort",
]
