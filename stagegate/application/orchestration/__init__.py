"""
Application Orchestration Package

Architectural Intent:
- Contains rollout orchestration components
- Stage-gated execution with concurrent readiness waits inside a stage
"""

from stagegate.application.orchestration.stage_sequencer import StageSequencer
from stagegate.application.orchestration.readiness import (
    ReadinessChecks,
    ReadinessProber,
)

__all__ = ["StageSequencer", "ReadinessChecks", "ReadinessProber"]
