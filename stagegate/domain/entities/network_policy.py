"""
Network Policy Model

Architectural Intent:
- Allow-only rule model for east-west traffic between workloads
- Absence of a matching allow rule is an implicit deny
- Rules are validated on construction; evaluation never fails on well-formed input

Design Decisions:
- There is no deny rule type: adding a rule can only widen access
- Port None is a wildcard
- FlowDecision mirrors an authorization result (verdict + reason)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from stagegate.domain.errors import PolicyEvaluationError
from stagegate.domain.value_objects.label_selector import LabelSelector


class Direction(str, Enum):
    INGRESS = "ingress"
    EGRESS = "egress"

    @staticmethod
    def parse(value: str) -> "Direction":
        try:
            return Direction(value.lower())
        except ValueError:
            raise PolicyEvaluationError(
                f"Direction must be 'ingress' or 'egress', got {value!r}"
            ) from None


class Verdict(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class NetworkRule:
    source: LabelSelector
    destination: LabelSelector
    port: Optional[int] = None
    direction: Direction = Direction.INGRESS
    name: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.source, LabelSelector) or not isinstance(
            self.destination, LabelSelector
        ):
            raise PolicyEvaluationError("Rule selectors must be LabelSelector instances")
        if self.port is not None:
            if isinstance(self.port, bool) or not isinstance(self.port, int):
                raise PolicyEvaluationError(f"Port must be an integer, got {self.port!r}")
            if not (1 <= self.port <= 65535):
                raise PolicyEvaluationError(f"Port must be 1-65535, got {self.port}")
        if not isinstance(self.direction, Direction):
            raise PolicyEvaluationError(f"Invalid direction: {self.direction!r}")

    @staticmethod
    def allow(
        source: dict[str, str],
        destination: dict[str, str],
        port: Optional[int] = None,
        direction: Direction = Direction.INGRESS,
        name: str = "",
    ) -> "NetworkRule":
        return NetworkRule(
            source=LabelSelector.of(source),
            destination=LabelSelector.of(destination),
            port=port,
            direction=direction,
            name=name,
        )

    def __str__(self) -> str:
        port = self.port if self.port is not None else "*"
        return f"allow {self.source} -> {self.destination}:{port} ({self.direction.value})"


@dataclass(frozen=True)
class FlowDecision:
    """Result of evaluating one flow."""

    verdict: Verdict
    reason: str
    matched: tuple[NetworkRule, ...] = ()

    @property
    def allowed(self) -> bool:
        return self.verdict == Verdict.ALLOW

    @staticmethod
    def allow(matched: tuple[NetworkRule, ...]) -> "FlowDecision":
        return FlowDecision(
            verdict=Verdict.ALLOW,
            reason=f"Allowed by {len(matched)} rule(s): {matched[0]}",
            matched=matched,
        )

    @staticmethod
    def deny(reason: str = "No allow rule matches (default deny)") -> "FlowDecision":
        return FlowDecision(verdict=Verdict.DENY, reason=reason)


@dataclass(frozen=True)
class NetworkPolicy:
    """An unordered, immutable set of allow rules."""

    rules: frozenset[NetworkRule] = frozenset()

    @staticmethod
    def of(rules: Iterable[NetworkRule]) -> "NetworkPolicy":
        return NetworkPolicy(frozenset(rules))

    def with_rule(self, rule: NetworkRule) -> "NetworkPolicy":
        return NetworkPolicy(self.rules | {rule})

    def allows(
        self,
        src: dict[str, str],
        dst: dict[str, str],
        port: int,
        direction: Direction,
    ) -> bool:
        from stagegate.domain.services.network_policy_evaluator import evaluate

        return evaluate(self.rules, src, dst, port, direction).allowed

    def __len__(self) -> int:
        return len(self.rules)
