"""Convert: re-register exported images under the destination naming scheme.

A convert result reports ``destination_image`` as the local address the
image was saved at, qualified with the destination host
(``dst.example.com/mirror/nginx:1.25``). Import reports the unqualified
mapping destination instead.
"""

from __future__ import annotations

import logging

from ..credentials import Credentials
from ..exclusions import matches_marker_prefix
from ..model import Block, ImageMapping, validate_for_convert
from ..results import Phase, StageResult
from ..streams import CancelToken
from ..transport import qualify
from .base import Stage

logger = logging.getLogger(__name__)


class ConvertStage(Stage):
    """Local retagging only; never touches a registry or credentials."""

    phase = Phase.CONVERT

    def validate(self, block: Block) -> None:
        validate_for_convert(block)

    def excluded(self, block: Block, mapping: ImageMapping) -> bool:
        return matches_marker_prefix(mapping.source, block.exclusions)

    def plan(self, block: Block, mapping: ImageMapping) -> StageResult:
        return StageResult(
            source_image=mapping.source,
            local_image=mapping.destination,
            destination_image=qualify(block.destination_registry.host, mapping.destination),
        )

    def process(
        self,
        block: Block,
        planned: StageResult,
        auth: Credentials | None,
        cancel: CancelToken,
    ) -> None:
        cancel.raise_if_cancelled()
        image = self.store.load(planned.local_image)
        self.store.save(planned.destination_image, image)

    def cleanup(self, block: Block, planned: StageResult, auth: Credentials | None) -> None:
        if planned.destination_image == planned.local_image:
            return
        if self.store.remove(planned.destination_image):
            logger.info("removed partial conversion %s", planned.destination_image)
