"""
Kubectl Adapter

Architectural Intent:
- Infrastructure adapter implementing PlatformPort against a Kubernetes cluster
- Drives the kubectl CLI through subprocess, wrapped in async via the default executor
- Stamps every applied object with the payload fingerprint annotation so a
  later observe() can tell whether the live object matches the manifest

Failure Semantics:
- A missing kubectl binary or a rejected command surfaces as ApplyError
- "NotFound" on observe is a normal observation (exists=False), not an error
"""

from __future__ import annotations
import asyncio
import copy
import json
import logging
import subprocess
from typing import Optional

from stagegate.domain.entities.resource_spec import ResourceSpec
from stagegate.domain.errors import ApplyError
from stagegate.domain.ports.platform_port import PlatformPort
from stagegate.domain.value_objects.observation import ResourceObservation

logger = logging.getLogger(__name__)

FINGERPRINT_ANNOTATION = "stagegate.io/payload-fingerprint"


class KubectlCommandError(Exception):
    def __init__(self, args: list[str], stderr: str):
        self.args_used = args
        self.stderr = stderr.strip()
        super().__init__(self.stderr or f"{' '.join(args)} failed")

    @property
    def not_found(self) -> bool:
        return "NotFound" in self.stderr or "not found" in self.stderr


class KubectlRunner:
    """Runs kubectl commands and returns their stdout."""

    def __init__(self, kubectl: str = "kubectl", context: str = "", timeout: int = 60):
        self.kubectl = kubectl
        self.context = context
        self.timeout = timeout

    def command(self, args: list[str], namespace: str = "") -> list[str]:
        cmd = [self.kubectl]
        if self.context:
            cmd += ["--context", self.context]
        if namespace:
            cmd += ["-n", namespace]
        return cmd + args

    def run(self, args: list[str], namespace: str = "", stdin: Optional[str] = None) -> str:
        cmd = self.command(args, namespace)
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                input=stdin,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise KubectlCommandError(cmd, f"'{self.kubectl}' not found")
        except subprocess.TimeoutExpired:
            raise KubectlCommandError(cmd, f"timed out after {self.timeout}s")
        except subprocess.CalledProcessError as e:
            raise KubectlCommandError(cmd, e.stderr or "")
        return result.stdout

    async def run_async(
        self, args: list[str], namespace: str = "", stdin: Optional[str] = None
    ) -> str:
        return await asyncio.get_event_loop().run_in_executor(
            None, lambda: self.run(args, namespace, stdin)
        )


def object_ref(spec: ResourceSpec) -> str:
    """kind/name reference for kubectl get."""
    metadata = spec.payload.get("metadata", {})
    kind = spec.payload.get("kind", spec.kind)
    return f"{kind.lower()}/{metadata.get('name', spec.name.split('/')[-1])}"


def stamped_payload(spec: ResourceSpec) -> dict:
    payload = copy.deepcopy(dict(spec.payload))
    metadata = payload.setdefault("metadata", {})
    annotations = metadata.get("annotations") or {}
    annotations[FINGERPRINT_ANNOTATION] = spec.fingerprint
    metadata["annotations"] = annotations
    return payload


def observation_from_object(obj: dict) -> ResourceObservation:
    """Reads replica status the way `kubectl rollout status` judges it.

    A workload counts as stale until its controller has observed the latest
    generation, and only replicas of the current revision count as updated.
    """
    metadata = obj.get("metadata") or {}
    annotations = metadata.get("annotations") or {}
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}
    desired = spec.get("replicas")
    ready = None
    updated = None
    detail = ""
    if desired is not None or "readyReplicas" in status:
        ready = status.get("readyReplicas", 0)
        updated = status.get("updatedReplicas", 0)
    if obj.get("kind") == "DaemonSet":
        desired = status.get("desiredNumberScheduled")
        ready = status.get("numberReady", 0)
        updated = status.get("updatedNumberScheduled", 0)

    stale = False
    generation = metadata.get("generation")
    if ready is not None and generation is not None:
        observed = status.get("observedGeneration")
        stale = observed is None or observed < generation

    phase = status.get("phase")
    if phase:
        detail = f"phase {phase}"
    return ResourceObservation(
        exists=True,
        fingerprint=annotations.get(FINGERPRINT_ANNOTATION, ""),
        desired_replicas=desired,
        ready_replicas=ready,
        updated_replicas=updated,
        stale=stale,
        detail=detail,
    )


class KubectlAdapter(PlatformPort):
    def __init__(self, runner: Optional[KubectlRunner] = None):
        self.runner = runner or KubectlRunner()

    async def apply(self, spec: ResourceSpec) -> None:
        body = json.dumps(stamped_payload(spec))
        try:
            await self.runner.run_async(
                ["apply", "-f", "-", "-o", "json"], spec.namespace, stdin=body
            )
        except KubectlCommandError as e:
            raise ApplyError(spec.name, str(e))
        logger.info("Applied %s", spec.name, extra={"resource": spec.name})

    async def observe(self, spec: ResourceSpec) -> ResourceObservation:
        try:
            output = await self.runner.run_async(
                ["get", object_ref(spec), "-o", "json"], spec.namespace
            )
        except KubectlCommandError as e:
            if e.not_found:
                return ResourceObservation.missing()
            raise ApplyError(spec.name, str(e))
        try:
            return observation_from_object(json.loads(output))
        except json.JSONDecodeError as e:
            raise ApplyError(spec.name, f"unreadable kubectl output: {e}")

    async def get_replicas(self, workload: str, namespace: str, kind: str = "deployment") -> int:
        ref = f"{kind}/{workload}"
        try:
            output = await self.runner.run_async(
                ["get", ref, "-o", "jsonpath={.spec.replicas}"], namespace
            )
        except KubectlCommandError as e:
            raise ApplyError(ref, str(e))
        try:
            return int(output.strip())
        except ValueError:
            raise ApplyError(ref, f"unexpected replica count {output.strip()!r}")

    async def scale(
        self, workload: str, namespace: str, replicas: int, kind: str = "deployment"
    ) -> None:
        ref = f"{kind}/{workload}"
        try:
            await self.runner.run_async(["scale", ref, f"--replicas={replicas}"], namespace)
        except KubectlCommandError as e:
            raise ApplyError(ref, str(e))
        logger.info("Scaled %s to %d replicas", ref, replicas, extra={"workload": workload})
