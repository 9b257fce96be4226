"""Export: pull images from the source registry into the local store."""

from __future__ import annotations

import logging
import shutil

from ..credentials import Credentials
from ..exclusions import matches_substring
from ..model import Block, ImageMapping, validate_for_export
from ..results import Phase, StageResult
from ..streams import CancelToken
from ..transport import qualify
from .base import Stage

logger = logging.getLogger(__name__)


class ExportStage(Stage):
    phase = Phase.EXPORT

    def validate(self, block: Block) -> None:
        validate_for_export(block)

    def prepare(self, block: Block) -> Credentials | None:
        return self._require_credentials().resolve(block.source_registry.host)

    def excluded(self, block: Block, mapping: ImageMapping) -> bool:
        return matches_substring(mapping.source, block.exclusions)

    def plan(self, block: Block, mapping: ImageMapping) -> StageResult:
        return StageResult(
            source_image=mapping.source,
            local_image=mapping.destination,
        )

    def process(
        self,
        block: Block,
        planned: StageResult,
        auth: Credentials | None,
        cancel: CancelToken,
    ) -> None:
        remote = qualify(block.source_registry.host, planned.source_image)
        image = self._require_transport().fetch(remote, auth, cancel=cancel)
        try:
            self.store.save(planned.local_image, image)
        finally:
            if image.transient and image.layout.exists():
                shutil.rmtree(image.layout, ignore_errors=True)

    def cleanup(self, block: Block, planned: StageResult, auth: Credentials | None) -> None:
        if self.store.remove(planned.local_image):
            logger.info("removed partial export %s", planned.local_image)
