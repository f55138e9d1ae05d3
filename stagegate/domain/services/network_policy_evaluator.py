"""
Network Policy Evaluator

Architectural Intent:
- Pure, stateless decision function over an allow-only rule set
- Default posture is deny
- Order of rules is irrelevant; overlapping allows are idempotent (union)

Invariant:
- Monotonic: adding a rule never turns an allowed flow into a denied one
"""

from __future__ import annotations
from typing import Iterable, Mapping

from stagegate.domain.entities.network_policy import (
    Direction,
    FlowDecision,
    NetworkRule,
)


def rule_matches(
    rule: NetworkRule,
    src: Mapping[str, str],
    dst: Mapping[str, str],
    port: int,
    direction: Direction,
) -> bool:
    return (
        rule.direction == direction
        and (rule.port is None or rule.port == port)
        and rule.source.matches(src)
        and rule.destination.matches(dst)
    )


def evaluate(
    rules: Iterable[NetworkRule],
    src: Mapping[str, str],
    dst: Mapping[str, str],
    port: int,
    direction: Direction,
) -> FlowDecision:
    matched = tuple(
        sorted(
            (r for r in set(rules) if rule_matches(r, src, dst, port, direction)),
            key=str,
        )
    )
    if matched:
        return FlowDecision.allow(matched)
    return FlowDecision.deny()
