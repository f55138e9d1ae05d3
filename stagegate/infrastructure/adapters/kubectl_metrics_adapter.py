"""
Kubectl Metrics Adapter

Architectural Intent:
- Infrastructure adapter implementing MetricsPort from the cluster metrics API
- Utilization = summed pod usage / summed container requests * 100,
  the same definition an HPA uses for resource metrics
- Any failure to produce a number raises MetricUnavailable; it is never zero
"""

from __future__ import annotations
import json
import logging
from urllib.parse import quote

from stagegate.domain.entities.autoscale import MetricKind
from stagegate.domain.errors import MetricUnavailable
from stagegate.domain.ports.metrics_port import MetricsPort
from stagegate.infrastructure.adapters.kubectl_adapter import KubectlCommandError, KubectlRunner

logger = logging.getLogger(__name__)

_SUFFIXES = {
    "n": 1e-9,
    "u": 1e-6,
    "m": 1e-3,
    "k": 1e3,
    "M": 1e6,
    "G": 1e9,
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
}


def parse_quantity(value: str) -> float:
    """Parses a Kubernetes quantity ("250m", "128Mi", "2") into a float."""
    value = str(value).strip()
    if not value:
        raise ValueError("empty quantity")
    for suffix in sorted(_SUFFIXES, key=len, reverse=True):
        if value.endswith(suffix):
            return float(value[: -len(suffix)]) * _SUFFIXES[suffix]
    return float(value)


class KubectlMetricsAdapter(MetricsPort):
    def __init__(self, runner: KubectlRunner | None = None):
        self.runner = runner or KubectlRunner()

    async def _get_json(self, args: list[str], namespace: str = "") -> dict:
        return json.loads(await self.runner.run_async(args, namespace))

    async def _selector(self, workload: str, namespace: str, kind: str) -> str:
        obj = await self._get_json(["get", f"{kind}/{workload}", "-o", "json"], namespace)
        labels = obj.get("spec", {}).get("selector", {}).get("matchLabels") or {}
        if not labels:
            raise ValueError("workload has no matchLabels selector")
        return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))

    async def read_utilization(
        self, workload: str, namespace: str, metric: MetricKind, kind: str = "deployment"
    ) -> float:
        resource = metric.value
        try:
            selector = await self._selector(workload, namespace, kind)
            usage_doc = await self._get_json([
                "get", "--raw",
                f"/apis/metrics.k8s.io/v1beta1/namespaces/{namespace}/pods"
                f"?labelSelector={quote(selector)}",
            ])
            pods_doc = await self._get_json(["get", "pods", "-l", selector, "-o", "json"], namespace)

            usage = sum(
                parse_quantity(c["usage"][resource])
                for item in usage_doc.get("items", [])
                for c in item.get("containers", [])
                if resource in c.get("usage", {})
            )
            requested = sum(
                parse_quantity(c["resources"]["requests"][resource])
                for pod in pods_doc.get("items", [])
                for c in pod.get("spec", {}).get("containers", [])
                if resource in (c.get("resources", {}).get("requests") or {})
            )
        except KubectlCommandError as e:
            raise MetricUnavailable(workload, resource, str(e))
        except (ValueError, KeyError, TypeError) as e:
            raise MetricUnavailable(workload, resource, f"unreadable metrics: {e}")

        if not usage_doc.get("items"):
            raise MetricUnavailable(workload, resource, "no pod metrics reported")
        if requested <= 0:
            raise MetricUnavailable(workload, resource, f"pods declare no {resource} requests")
        utilization = usage / requested * 100.0
        logger.debug("%s %s utilization %.1f%%", workload, resource, utilization,
                     extra={"workload": workload})
        return utilization
