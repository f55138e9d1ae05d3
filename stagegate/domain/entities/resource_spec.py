"""
Resource Definitions

Architectural Intent:
- Immutable definition of one resource in a staged rollout
- Carries stage, dependencies and a readiness descriptor next to an opaque payload
- The payload is never interpreted by the domain; only the platform adapter reads it

Design Decisions:
- Identity is the `name` (unique within a rollout)
- Payload fingerprint is sha256 over canonical JSON so re-runs can detect
  an already-applied resource without diffing platform objects
"""

from __future__ import annotations
import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class ReadinessKind(str, Enum):
    IMMEDIATE = "immediate"
    REPLICAS = "replicas"
    HTTP = "http"


@dataclass(frozen=True)
class ReadinessProbe:
    """Describes how to decide that a resource is healthy and serving."""

    kind: ReadinessKind = ReadinessKind.IMMEDIATE
    timeout_seconds: Optional[float] = None
    min_ready: Optional[int] = None
    url: str = ""

    def __post_init__(self) -> None:
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(
                f"Readiness timeout must be positive, got {self.timeout_seconds}"
            )
        if self.min_ready is not None and self.min_ready < 0:
            raise ValueError(f"min_ready cannot be negative, got {self.min_ready}")
        if self.kind == ReadinessKind.HTTP and not self.url:
            raise ValueError("HTTP readiness requires a url")


@dataclass(frozen=True)
class ResourceSpec:
    name: str
    kind: str
    stage: int = 0
    depends_on: tuple[str, ...] = ()
    readiness: ReadinessProbe = field(default_factory=ReadinessProbe)
    payload: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    optional: bool = False
    namespace: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Resource name cannot be empty")
        if not self.kind:
            raise ValueError(f"Resource {self.name!r} has no kind")
        if isinstance(self.depends_on, list):
            object.__setattr__(self, "depends_on", tuple(self.depends_on))

    @property
    def fingerprint(self) -> str:
        canonical = json.dumps(self.payload, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode()).hexdigest()

    def __str__(self) -> str:
        return self.name
