"""
Resource Catalog

Architectural Intent:
- Declarative store of the resource definitions for one rollout
- Validates the dependency graph once, before any platform call
- Exposes stage grouping for the sequencer

Validation Rules:
- Names are unique and every dependency refers to a known resource
- The dependency graph is acyclic
- A dependency lives in a strictly earlier stage: resources of one stage are
  applied in no particular order, so they cannot depend on each other
"""

from __future__ import annotations
from itertools import groupby
from typing import Iterable, Iterator, Mapping, Optional, Sequence

from stagegate.domain.entities.resource_spec import ResourceSpec
from stagegate.domain.errors import ConfigurationError


def _find_cycle(graph: Mapping[str, Sequence[str]]) -> Optional[list[str]]:
    visited: set[str] = set()
    rec_stack: list[str] = []

    def visit(name: str) -> Optional[list[str]]:
        visited.add(name)
        rec_stack.append(name)
        for dep in graph.get(name, ()):
            if dep in rec_stack:
                return rec_stack[rec_stack.index(dep):] + [dep]
            if dep not in visited:
                cycle = visit(dep)
                if cycle:
                    return cycle
        rec_stack.pop()
        return None

    for name in graph:
        if name not in visited:
            cycle = visit(name)
            if cycle:
                return cycle
    return None


def infer_stages(
    declared: Mapping[str, Optional[int]],
    dependencies: Mapping[str, Sequence[str]],
) -> dict[str, int]:
    """Fill in missing stages as one past the deepest dependency.

    Declared stages are kept as-is; validation of the result happens in
    ResourceCatalog.
    """
    cycle = _find_cycle(dependencies)
    if cycle:
        raise ConfigurationError(f"Circular dependency: {' -> '.join(cycle)}")

    resolved: dict[str, int] = {}

    def stage_of(name: str) -> int:
        if name in resolved:
            return resolved[name]
        if name not in declared:
            raise ConfigurationError(f"Unknown dependency: {name!r}")
        stage = declared[name]
        if stage is None:
            deps = dependencies.get(name, ())
            stage = max((stage_of(d) for d in deps), default=-1) + 1
        resolved[name] = stage
        return stage

    for name in declared:
        stage_of(name)
    return resolved


class ResourceCatalog:
    """Validated, immutable collection of ResourceSpecs."""

    def __init__(self, specs: Iterable[ResourceSpec]) -> None:
        self._specs: dict[str, ResourceSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise ConfigurationError(f"Duplicate resource name: {spec.name!r}")
            self._specs[spec.name] = spec
        self._validate()

    def _validate(self) -> None:
        for spec in self._specs.values():
            if spec.stage < 0:
                raise ConfigurationError(
                    f"Resource {spec.name!r} has negative stage {spec.stage}"
                )
            for dep in spec.depends_on:
                if dep not in self._specs:
                    raise ConfigurationError(
                        f"Resource {spec.name!r} depends on unknown resource {dep!r}"
                    )

        cycle = _find_cycle({n: s.depends_on for n, s in self._specs.items()})
        if cycle:
            raise ConfigurationError(f"Circular dependency: {' -> '.join(cycle)}")

        for spec in self._specs.values():
            for dep in spec.depends_on:
                dep_stage = self._specs[dep].stage
                if dep_stage == spec.stage:
                    raise ConfigurationError(
                        f"Resource {spec.name!r} depends on {dep!r} in the same "
                        f"stage {spec.stage}"
                    )
                if dep_stage > spec.stage:
                    raise ConfigurationError(
                        f"Resource {spec.name!r} (stage {spec.stage}) depends on "
                        f"{dep!r} in later stage {dep_stage}"
                    )

    def get(self, name: str) -> ResourceSpec:
        return self._specs[name]

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[ResourceSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def stages(self) -> list[tuple[int, list[ResourceSpec]]]:
        """Specs grouped by stage index, ascending."""
        ordered = sorted(self._specs.values(), key=lambda s: s.stage)
        return [
            (stage, list(group))
            for stage, group in groupby(ordered, key=lambda s: s.stage)
        ]

