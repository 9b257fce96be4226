"""Import: push converted images to the destination registry."""

from __future__ import annotations

import logging

from ..credentials import Credentials
from ..exclusions import matches_substring
from ..model import Block, ImageMapping, validate_for_import
from ..results import Phase, StageResult
from ..streams import CancelToken
from ..transport import qualify
from .base import Stage

logger = logging.getLogger(__name__)


class ImportStage(Stage):
    phase = Phase.IMPORT

    def validate(self, block: Block) -> None:
        validate_for_import(block)

    def prepare(self, block: Block) -> Credentials | None:
        return self._require_credentials().resolve(block.destination_registry.host)

    def excluded(self, block: Block, mapping: ImageMapping) -> bool:
        return matches_substring(mapping.destination, block.exclusions)

    def plan(self, block: Block, mapping: ImageMapping) -> StageResult:
        local = qualify(block.destination_registry.host, mapping.destination)
        # convert was skipped: push the export address as is
        if not self.store.exists(local) and self.store.exists(mapping.destination):
            local = mapping.destination
        return StageResult(local_image=local, destination_image=mapping.destination)

    def process(
        self,
        block: Block,
        planned: StageResult,
        auth: Credentials | None,
        cancel: CancelToken,
    ) -> None:
        image = self.store.load(planned.local_image)
        remote = qualify(block.destination_registry.host, planned.destination_image)
        digest = self._require_transport().store(remote, image, auth, cancel=cancel)
        logger.debug("import pushed %s digest=%s", remote, digest or "unknown")

    def cleanup(self, block: Block, planned: StageResult, auth: Credentials | None) -> None:
        remote = qualify(block.destination_registry.host, planned.destination_image)
        self._require_transport().delete(remote, auth)
        logger.info("deleted partial import %s", remote)
