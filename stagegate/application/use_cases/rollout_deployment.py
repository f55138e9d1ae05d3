"""
Rollout Deployment Use Case

Architectural Intent:
- Loads a manifest set, validates it and drives the stage sequencer
- Configuration errors surface before any platform call
- The final (possibly partial) RolloutState is persisted when a repository is wired
"""

from __future__ import annotations
import asyncio
import logging
from typing import Optional

from stagegate.application.dtos.rollout_dtos import RolloutRequest, RolloutResponse
from stagegate.application.orchestration.stage_sequencer import StageSequencer
from stagegate.domain.ports.manifest_source_port import ManifestSourcePort
from stagegate.domain.services.resource_catalog import ResourceCatalog

logger = logging.getLogger(__name__)


class RolloutDeployment:
    def __init__(
        self,
        manifest_source: ManifestSourcePort,
        sequencer: StageSequencer,
        repository=None,
    ):
        self.manifest_source = manifest_source
        self.sequencer = sequencer
        self.repository = repository

    async def execute(
        self, request: RolloutRequest, cancel: Optional[asyncio.Event] = None
    ) -> RolloutResponse:
        specs = self.manifest_source.load_resources(request.manifest_path, request.namespace)
        catalog = ResourceCatalog(specs)

        if request.dry_run:
            plan = self.sequencer.plan(catalog)
            logger.info("Dry run: %d resources in %d stages", len(catalog), len(plan))
            return RolloutResponse(
                success=True,
                message=f"Dry run: {len(catalog)} resources in {len(plan)} stages",
                plan=tuple(
                    (stage, tuple(s.name for s in members)) for stage, members in plan
                ),
            )

        state = await self.sequencer.rollout(catalog, namespace=request.namespace, cancel=cancel)

        if self.repository is not None:
            self.repository.save_rollout(state)

        return RolloutResponse.from_state(state)
