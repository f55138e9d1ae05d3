"""
Domain Services Package

Architectural Intent:
- Contains domain services implementing rollout, policy and scaling rules
- Everything here is pure: no I/O, no clocks except where injected
"""

from stagegate.domain.services.resource_catalog import ResourceCatalog, infer_stages
from stagegate.domain.services.network_policy_evaluator import evaluate, rule_matches
from stagegate.domain.services.autoscale_policy import (
    clamp,
    desired_replicas,
    tick,
)
from stagegate.domain.services.readiness_predicates import evaluate_observation

__all__ = [
    "ResourceCatalog",
    "infer_stages",
    "evaluate",
    "rule_matches",
    "clamp",
    "desired_replicas",
    "tick",
    "evaluate_observation",
]
