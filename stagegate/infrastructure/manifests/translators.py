"""
Manifest Translators

Architectural Intent:
- Turn platform-native documents into domain objects
- NetworkPolicy (networking.k8s.io/v1) -> allow-only NetworkRules
- HorizontalPodAutoscaler (autoscaling/v1, autoscaling/v2) -> AutoscaleSpec

Design Decisions:
- Each `from`/`to` peer crossed with each port becomes one rule
- A policy with no peers for a direction it lists allows nothing in that
  direction; a missing peer list allows all peers
- Peers that cannot be expressed as pod label selectors (namespaceSelector,
  ipBlock) are skipped with a warning, which only ever removes allows
"""

from __future__ import annotations
import logging
from datetime import timedelta
from typing import Any, Mapping, Optional

from stagegate.domain.entities.autoscale import (
    DEFAULT_COOLDOWN,
    AutoscaleSpec,
    MetricKind,
    MetricTarget,
)
from stagegate.domain.entities.network_policy import Direction, NetworkRule
from stagegate.domain.errors import ConfigurationError, PolicyEvaluationError
from stagegate.domain.value_objects.label_selector import LabelSelector

logger = logging.getLogger(__name__)


def _selector(doc: Optional[Mapping[str, Any]], where: str) -> LabelSelector:
    doc = doc or {}
    if doc.get("matchExpressions"):
        raise PolicyEvaluationError(f"{where}: matchExpressions are not supported")
    labels = doc.get("matchLabels") or {}
    if not isinstance(labels, Mapping):
        raise PolicyEvaluationError(f"{where}: matchLabels must be a mapping")
    return LabelSelector.of({str(k): str(v) for k, v in labels.items()})


def _ports(entry: Mapping[str, Any], where: str) -> list[Optional[int]]:
    ports = entry.get("ports") or []
    if not ports:
        return [None]
    result: list[Optional[int]] = []
    for item in ports:
        port = item.get("port")
        if port is None:
            result.append(None)
        elif isinstance(port, int) and not isinstance(port, bool):
            result.append(port)
        else:
            raise PolicyEvaluationError(f"{where}: named or malformed port {port!r}")
    return result


def _peers(entry: Mapping[str, Any], key: str, where: str) -> list[LabelSelector]:
    if key not in entry or entry[key] is None:
        return [LabelSelector()]
    selectors = []
    for peer in entry[key]:
        if "podSelector" in peer and "namespaceSelector" not in peer:
            selectors.append(_selector(peer["podSelector"], where))
        else:
            logger.warning("%s: skipping peer %s (only podSelector peers are evaluated)",
                           where, sorted(peer))
    return selectors


def network_rules_from_policy(doc: Mapping[str, Any]) -> list[NetworkRule]:
    """Extracts allow rules from one NetworkPolicy document."""
    name = doc.get("metadata", {}).get("name", "")
    where = f"networkpolicy/{name}"
    spec = doc.get("spec") or {}
    subject = _selector(spec.get("podSelector"), where)
    policy_types = spec.get("policyTypes") or (
        ["Ingress", "Egress"] if "egress" in spec else ["Ingress"]
    )

    rules: list[NetworkRule] = []
    if "Ingress" in policy_types:
        for entry in spec.get("ingress") or []:
            for peer in _peers(entry, "from", where):
                for port in _ports(entry, where):
                    rules.append(NetworkRule(peer, subject, port, Direction.INGRESS, name))
    if "Egress" in policy_types:
        for entry in spec.get("egress") or []:
            for peer in _peers(entry, "to", where):
                for port in _ports(entry, where):
                    rules.append(NetworkRule(subject, peer, port, Direction.EGRESS, name))
    logger.debug("%s: %d allow rule(s)", where, len(rules))
    return rules


def _targets_v2(spec: Mapping[str, Any], where: str) -> list[MetricTarget]:
    targets = []
    for metric in spec.get("metrics") or []:
        resource = metric.get("resource") or {}
        target = resource.get("target") or {}
        if metric.get("type") != "Resource" or target.get("type") != "Utilization":
            logger.warning("%s: skipping unsupported metric %s", where, metric.get("type"))
            continue
        try:
            kind = MetricKind(resource.get("name"))
        except ValueError:
            logger.warning("%s: skipping unsupported resource %s", where, resource.get("name"))
            continue
        if "averageUtilization" not in target:
            raise ConfigurationError(f"{where}: {kind.value} target needs averageUtilization")
        targets.append(MetricTarget(kind, float(target["averageUtilization"])))
    return targets


def autoscale_spec_from_hpa(
    doc: Mapping[str, Any],
    namespace: str = "",
    current_replicas: Optional[int] = None,
    tolerance: float = 0.0,
    default_cooldown: timedelta = DEFAULT_COOLDOWN,
) -> AutoscaleSpec:
    """Builds an AutoscaleSpec from a HorizontalPodAutoscaler document."""
    metadata = doc.get("metadata") or {}
    where = f"horizontalpodautoscaler/{metadata.get('name', '')}"
    spec = doc.get("spec") or {}
    ref = spec.get("scaleTargetRef") or {}
    if not ref.get("name"):
        raise ConfigurationError(f"{where}: scaleTargetRef.name is required")

    if "targetCPUUtilizationPercentage" in spec:
        targets = [MetricTarget(MetricKind.CPU, float(spec["targetCPUUtilizationPercentage"]))]
    else:
        targets = _targets_v2(spec, where)
    if not targets:
        raise ConfigurationError(f"{where}: no supported utilization targets")

    window = (
        ((spec.get("behavior") or {}).get("scaleDown") or {}).get("stabilizationWindowSeconds")
    )
    cooldown = timedelta(seconds=window) if window is not None else default_cooldown

    min_replicas = int(spec.get("minReplicas", 1))
    try:
        return AutoscaleSpec(
            workload=ref["name"],
            targets=tuple(targets),
            min_replicas=min_replicas,
            max_replicas=int(spec["maxReplicas"]),
            current_replicas=current_replicas if current_replicas is not None else min_replicas,
            namespace=metadata.get("namespace") or namespace,
            kind=ref.get("kind", "Deployment").lower(),
            cooldown=cooldown,
            tolerance=tolerance,
        )
    except KeyError as e:
        raise ConfigurationError(f"{where}: missing {e.args[0]}")
    except ValueError as e:
        raise ConfigurationError(f"{where}: {e}")
