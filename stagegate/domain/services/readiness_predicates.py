"""
Readiness Predicates

Architectural Intent:
- Kind-specific "healthy and serving" checks over a platform observation
- Pure functions; I/O (platform reads, HTTP probes) stays in the application layer
"""

from stagegate.domain.entities.resource_spec import ReadinessKind, ReadinessProbe
from stagegate.domain.value_objects.observation import ReadinessResult, ResourceObservation


def replicas_ready(probe: ReadinessProbe, observation: ResourceObservation) -> ReadinessResult:
    if not observation.exists or observation.stale:
        return ReadinessResult.unhealthy(str(observation))
    required = probe.min_ready
    if required is None:
        required = observation.desired_replicas if observation.desired_replicas is not None else 1
    ready = observation.ready_replicas or 0
    # pods of the previous revision do not count towards an update
    if observation.updated_replicas is not None and observation.updated_replicas < required:
        return ReadinessResult.unhealthy(
            f"{observation.updated_replicas}/{required} replicas updated"
        )
    if ready >= required:
        return ReadinessResult.healthy(f"{ready}/{required} replicas ready")
    return ReadinessResult.unhealthy(f"{ready}/{required} replicas ready")


def exists(probe: ReadinessProbe, observation: ResourceObservation) -> ReadinessResult:
    if observation.exists and observation.ready is not False:
        return ReadinessResult.healthy(str(observation))
    return ReadinessResult.unhealthy(str(observation))


def evaluate_observation(
    probe: ReadinessProbe, observation: ResourceObservation
) -> ReadinessResult:
    """Evaluate the platform-observable part of a probe.

    HTTP probes only require existence here; the endpoint itself is checked
    through the health-check port.
    """
    if probe.kind == ReadinessKind.REPLICAS:
        return replicas_ready(probe, observation)
    return exists(probe, observation)
