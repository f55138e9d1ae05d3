"""Global test configuration.

Shared fixtures: resource spec factory, a fast readiness prober and an
in-memory platform wired into a stage sequencer.
"""

import pytest

from stagegate.application.orchestration.readiness import ReadinessChecks, ReadinessProber
from stagegate.application.orchestration.stage_sequencer import StageSequencer
from stagegate.domain.entities.resource_spec import ReadinessKind, ReadinessProbe, ResourceSpec
from stagegate.infrastructure.adapters.simulated_platform import (
    SimulatedHealthCheck,
    SimulatedPlatform,
)


def make_spec(
    name,
    stage=0,
    depends_on=(),
    kind="configmap",
    readiness=ReadinessKind.IMMEDIATE,
    timeout=1.0,
    optional=False,
    replicas=None,
    url="",
    namespace="test",
):
    payload = {"kind": kind, "metadata": {"name": name.split("/")[-1]}}
    if replicas is not None:
        payload["spec"] = {"replicas": replicas}
    return ResourceSpec(
        name=name,
        kind=kind,
        stage=stage,
        depends_on=tuple(depends_on),
        readiness=ReadinessProbe(readiness, timeout, url=url),
        payload=payload,
        optional=optional,
        namespace=namespace,
    )


@pytest.fixture
def spec_factory():
    return make_spec


@pytest.fixture
def fast_prober():
    return ReadinessProber(initial_interval=0.01, max_interval=0.05, multiplier=2.0)


@pytest.fixture
def platform():
    return SimulatedPlatform()


@pytest.fixture
def health():
    return SimulatedHealthCheck()


@pytest.fixture
def sequencer(platform, health, fast_prober):
    return StageSequencer(ReadinessChecks(platform, health), prober=fast_prober)
