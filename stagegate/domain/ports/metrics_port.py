"""
Metrics Port

Architectural Intent:
- Port interface for per-workload utilization readings
- A failed read raises MetricUnavailable; it is never reported as zero
"""

from abc import ABC, abstractmethod
from stagegate.domain.entities.autoscale import MetricKind


class MetricsPort(ABC):
    @abstractmethod
    async def read_utilization(
        self, workload: str, namespace: str, metric: MetricKind
    ) -> float:
        """
        Returns utilization as a percentage of requested resources.
        """
        pass
