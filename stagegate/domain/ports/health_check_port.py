"""
Health Check Port

Architectural Intent:
- Port interface for endpoint-level readiness (e.g. a service's /health route)
"""

from typing import Protocol, runtime_checkable
from stagegate.domain.value_objects.observation import ReadinessResult


@runtime_checkable
class HealthCheckPort(Protocol):
    async def check(self, url: str, timeout: float = 5.0) -> ReadinessResult: ...
