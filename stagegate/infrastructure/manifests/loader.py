"""
YAML Manifest Source

Architectural Intent:
- Infrastructure adapter implementing ManifestSourcePort over YAML files
- Reads a single file or every *.yaml / *.yml file of a directory in filename order
- Rollout options are carried by `stagegate.io/*` annotations, so the same files
  stay valid input for kubectl

Annotations:
- stagegate.io/stage       integer stage; inferred from dependencies when absent
- stagegate.io/depends-on  comma-separated resource names (kind/name)
- stagegate.io/optional    "true" lets the rollout continue when it fails
- stagegate.io/readiness   immediate | replicas | http
- stagegate.io/timeout     readiness timeout, e.g. "120", "90s", "5m"
- stagegate.io/min-ready   replicas required for replica readiness
- stagegate.io/health-url  endpoint for http readiness
"""

from __future__ import annotations
import copy
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml

from stagegate.domain.entities.autoscale import DEFAULT_COOLDOWN, AutoscaleSpec
from stagegate.domain.entities.network_policy import NetworkRule
from stagegate.domain.entities.resource_spec import ReadinessKind, ReadinessProbe, ResourceSpec
from stagegate.domain.errors import ConfigurationError
from stagegate.domain.ports.manifest_source_port import ManifestSourcePort
from stagegate.domain.services.resource_catalog import infer_stages
from stagegate.infrastructure.manifests.translators import (
    autoscale_spec_from_hpa,
    network_rules_from_policy,
)

logger = logging.getLogger(__name__)

ANNOTATION_PREFIX = "stagegate.io/"

REPLICA_KINDS = {"deployment", "statefulset", "daemonset", "replicaset"}

CLUSTER_SCOPED_KINDS = {
    "namespace",
    "clusterrole",
    "clusterrolebinding",
    "customresourcedefinition",
    "persistentvolume",
    "priorityclass",
    "storageclass",
}


def resource_name(doc: dict) -> str:
    return f"{doc['kind']}/{doc['metadata']['name']}".lower()


def parse_duration(value: Any) -> float:
    """Parses "120", "90s" or "5m" into seconds."""
    text = str(value).strip().lower()
    multiplier = 1.0
    if text.endswith("m"):
        multiplier, text = 60.0, text[:-1]
    elif text.endswith("s"):
        text = text[:-1]
    return float(text) * multiplier


def _flag(value: Any) -> bool:
    return str(value).strip().lower() in ("true", "1", "yes")


class YamlManifestSource(ManifestSourcePort):
    def __init__(
        self,
        autoscale_tolerance: float = 0.0,
        autoscale_cooldown: timedelta = DEFAULT_COOLDOWN,
    ):
        self.autoscale_tolerance = autoscale_tolerance
        self.autoscale_cooldown = autoscale_cooldown

    # -- Reading -------------------------------------------------------------

    @staticmethod
    def _files(path: str) -> list[Path]:
        root = Path(path)
        if root.is_dir():
            files = sorted(
                p for p in root.iterdir() if p.is_file() and p.suffix in (".yaml", ".yml")
            )
            if not files:
                raise ConfigurationError(f"No YAML manifests in {root}")
            return files
        if root.is_file():
            return [root]
        raise ConfigurationError(f"Manifest path not found: {root}")

    def documents(self, path: str) -> Iterator[dict]:
        for file in self._files(path):
            try:
                with open(file) as f:
                    docs = list(yaml.safe_load_all(f))
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {file}: {e}")
            for doc in docs:
                if doc is None:
                    continue
                if isinstance(doc, dict) and doc.get("kind") == "List":
                    for item in doc.get("items") or []:
                        if item:
                            yield self._checked(file, item)
                    continue
                yield self._checked(file, doc)

    @staticmethod
    def _checked(file: Path, doc: object) -> dict:
        if not isinstance(doc, dict):
            raise ConfigurationError(f"{file}: expected a mapping, got {type(doc).__name__}")
        if not doc.get("kind") or not (doc.get("metadata") or {}).get("name"):
            raise ConfigurationError(f"{file}: every document needs kind and metadata.name")
        return doc

    # -- Resources -----------------------------------------------------------

    @staticmethod
    def _annotations(doc: dict) -> dict[str, str]:
        annotations = doc.get("metadata", {}).get("annotations") or {}
        return {
            key[len(ANNOTATION_PREFIX):]: value
            for key, value in annotations.items()
            if key.startswith(ANNOTATION_PREFIX)
        }

    @staticmethod
    def _probe(name: str, kind: str, options: dict[str, str]) -> ReadinessProbe:
        url = str(options.get("health-url", ""))
        if "readiness" in options:
            try:
                readiness = ReadinessKind(str(options["readiness"]).lower())
            except ValueError:
                raise ConfigurationError(
                    f"{name}: unknown readiness {options['readiness']!r}"
                )
        elif url:
            readiness = ReadinessKind.HTTP
        elif kind in REPLICA_KINDS:
            readiness = ReadinessKind.REPLICAS
        else:
            readiness = ReadinessKind.IMMEDIATE

        try:
            timeout = parse_duration(options["timeout"]) if "timeout" in options else None
            min_ready = int(options["min-ready"]) if "min-ready" in options else None
            return ReadinessProbe(readiness, timeout, min_ready, url)
        except ValueError as e:
            raise ConfigurationError(f"{name}: invalid readiness options: {e}")

    def _with_namespace(self, doc: dict, kind: str, namespace: str) -> tuple[dict, str]:
        if kind in CLUSTER_SCOPED_KINDS:
            return doc, ""
        payload = copy.deepcopy(doc)
        metadata = payload["metadata"]
        if namespace and not metadata.get("namespace"):
            metadata["namespace"] = namespace
        return payload, metadata.get("namespace", "")

    def load_resources(self, path: str, namespace: str) -> list[ResourceSpec]:
        docs = list(self.documents(path))
        parsed = []
        declared: dict[str, Optional[int]] = {}
        dependencies: dict[str, list[str]] = {}

        for doc in docs:
            name = resource_name(doc)
            if name in declared:
                raise ConfigurationError(f"Duplicate resource: {name}")
            options = self._annotations(doc)
            try:
                declared[name] = int(options["stage"]) if "stage" in options else None
            except ValueError:
                raise ConfigurationError(f"{name}: stage must be an integer")
            dependencies[name] = [
                d.strip().lower()
                for d in str(options.get("depends-on", "")).split(",")
                if d.strip()
            ]
            parsed.append((name, doc, options))

        stages = infer_stages(declared, dependencies)

        specs = []
        for name, doc, options in parsed:
            kind = doc["kind"].lower()
            payload, resource_ns = self._with_namespace(doc, kind, namespace)
            specs.append(
                ResourceSpec(
                    name=name,
                    kind=kind,
                    stage=stages[name],
                    depends_on=tuple(dependencies[name]),
                    readiness=self._probe(name, kind, options),
                    payload=payload,
                    optional=_flag(options.get("optional", "false")),
                    namespace=resource_ns,
                )
            )
        logger.info("Loaded %d resource(s) from %s", len(specs), path)
        return specs

    # -- Policies and autoscalers --------------------------------------------

    def load_network_rules(self, path: str) -> list[NetworkRule]:
        rules: list[NetworkRule] = []
        for doc in self.documents(path):
            if doc["kind"] == "NetworkPolicy":
                rules.extend(network_rules_from_policy(doc))
        return rules

    def load_autoscale_specs(self, path: str, namespace: str) -> list[AutoscaleSpec]:
        docs = list(self.documents(path))
        replicas = {
            resource_name(doc): (doc.get("spec") or {}).get("replicas")
            for doc in docs
        }
        specs = []
        for doc in docs:
            if doc["kind"] != "HorizontalPodAutoscaler":
                continue
            ref = (doc.get("spec") or {}).get("scaleTargetRef") or {}
            target = f"{ref.get('kind', 'Deployment')}/{ref.get('name', '')}".lower()
            specs.append(
                autoscale_spec_from_hpa(
                    doc,
                    namespace=namespace,
                    current_replicas=replicas.get(target),
                    tolerance=self.autoscale_tolerance,
                    default_cooldown=self.autoscale_cooldown,
                )
            )
        return specs
