"""
Manifest Source Port

Architectural Intent:
- Port interface for reading declarative definitions from storage
- Produces resource specs, network rules and autoscale specs for the use cases
- Implemented by YamlManifestSource
"""

from abc import ABC, abstractmethod
from stagegate.domain.entities.autoscale import AutoscaleSpec
from stagegate.domain.entities.network_policy import NetworkRule
from stagegate.domain.entities.resource_spec import ResourceSpec


class ManifestSourcePort(ABC):
    @abstractmethod
    def load_resources(self, path: str, namespace: str) -> list[ResourceSpec]:
        """
        Loads resource specs; raises ConfigurationError on malformed input.
        """
        pass

    @abstractmethod
    def load_network_rules(self, path: str) -> list[NetworkRule]:
        """
        Extracts allow rules from the network policies in the manifest set.
        Raises PolicyEvaluationError on malformed selectors.
        """
        pass

    @abstractmethod
    def load_autoscale_specs(self, path: str, namespace: str) -> list[AutoscaleSpec]:
        """
        Extracts autoscale specs from the autoscaler definitions in the manifest set.
        """
        pass
