from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ResourceObservation:
    """
    Value Object: what the platform reports about one resource right now.
    """
    exists: bool
    fingerprint: str = ""
    desired_replicas: Optional[int] = None
    ready_replicas: Optional[int] = None
    updated_replicas: Optional[int] = None
    # controller has not yet acted on the latest spec generation
    stale: bool = False
    # platform-reported readiness for kinds without replicas; None when unknown
    ready: Optional[bool] = None
    detail: str = ""

    @staticmethod
    def missing(detail: str = "not found") -> "ResourceObservation":
        return ResourceObservation(exists=False, detail=detail)

    def __str__(self) -> str:
        if not self.exists:
            return self.detail or "not found"
        parts = []
        if self.desired_replicas is not None or self.ready_replicas is not None:
            parts.append(f"{self.ready_replicas or 0}/{self.desired_replicas or 0} ready")
        if self.stale:
            parts.append("update not yet observed")
        if self.ready is False:
            parts.append("not ready")
        if self.detail:
            parts.append(self.detail)
        return ", ".join(parts) or "exists"


@dataclass(frozen=True)
class ReadinessResult:
    """
    Value Object: outcome of one readiness predicate evaluation.
    """
    ready: bool
    detail: str = ""

    @staticmethod
    def healthy(detail: str = "ready") -> "ReadinessResult":
        return ReadinessResult(ready=True, detail=detail)

    @staticmethod
    def unhealthy(detail: str) -> "ReadinessResult":
        return ReadinessResult(ready=False, detail=detail)
