"""
Platform Port

Architectural Intent:
- Port interface for the orchestration platform that receives resource payloads
- Apply is create-or-update and idempotent
- Implemented by KubectlAdapter and SimulatedPlatform
"""

from abc import ABC, abstractmethod
from stagegate.domain.entities.resource_spec import ResourceSpec
from stagegate.domain.value_objects.observation import ResourceObservation


class PlatformPort(ABC):
    """
    Port interface for applying and observing resources.
    """

    @abstractmethod
    async def apply(self, spec: ResourceSpec) -> None:
        """
        Submits a resource payload (create-or-update).
        Raises ApplyError when the platform rejects it.
        """
        pass

    @abstractmethod
    async def observe(self, spec: ResourceSpec) -> ResourceObservation:
        """
        Reports the current state of a resource, including the fingerprint
        of the payload last applied through this port.
        """
        pass

    @abstractmethod
    async def get_replicas(self, workload: str, namespace: str, kind: str = "deployment") -> int:
        """
        Returns the current desired replica count of a workload.
        """
        pass

    @abstractmethod
    async def scale(
        self, workload: str, namespace: str, replicas: int, kind: str = "deployment"
    ) -> None:
        """
        Sets the replica count of a workload.
        """
        pass
