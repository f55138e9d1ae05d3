"""
Check Network Flow Use Case

Architectural Intent:
- Answers "would this flow be allowed?" against the policies of a manifest set
- Rules are validated when loaded; evaluation itself is pure and total
"""

from typing import Mapping

from stagegate.domain.entities.network_policy import Direction, FlowDecision
from stagegate.domain.ports.manifest_source_port import ManifestSourcePort
from stagegate.domain.services.network_policy_evaluator import evaluate


class CheckNetworkFlow:
    def __init__(self, manifest_source: ManifestSourcePort):
        self.manifest_source = manifest_source

    def execute(
        self,
        manifest_path: str,
        src: Mapping[str, str],
        dst: Mapping[str, str],
        port: int,
        direction: Direction,
    ) -> FlowDecision:
        rules = self.manifest_source.load_network_rules(manifest_path)
        return evaluate(rules, src, dst, port, direction)
