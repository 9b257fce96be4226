"""Shared per-image loop for export, convert and import."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

from ..credentials import Credentials, CredentialStore
from ..errors import (
    CleanupError,
    CredentialError,
    MaginaError,
    OperationCancelledError,
    ValidationError,
)
from ..model import Block, ImageMapping
from ..results import Phase, StageResult
from ..streams import CancelToken, ResultStream
from ..transport import LocalImageStore, RegistryTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageOptions:
    clean_on_error: bool = False


class Stage(ABC):
    """One migration phase applied to every mapping of a block, in order.

    ``run`` returns immediately; results are produced on a background thread
    and handed over one at a time through the returned stream.
    """

    phase: Phase

    def __init__(
        self,
        *,
        store: LocalImageStore,
        transport: RegistryTransport | None = None,
        credentials: CredentialStore | None = None,
        options: StageOptions | None = None,
    ) -> None:
        self.store = store
        self.transport = transport
        self.credentials = credentials
        self.options = options or StageOptions()

    @property
    def name(self) -> str:
        return self.phase.value.lower()

    def run(self, block: Block, *, cancel: CancelToken | None = None) -> ResultStream[StageResult]:
        token = cancel.child() if cancel is not None else CancelToken()

        def produce(emit) -> None:
            try:
                self.validate(block)
                auth = self.prepare(block)
            except (ValidationError, CredentialError) as exc:
                logger.error("%s: %s", self.name, exc)
                emit(StageResult(error=exc))
                return

            for mapping in block.image_mappings:
                if token.cancelled:
                    logger.info("%s stopped: %s", self.name, token.reason)
                    return
                if self.excluded(block, mapping):
                    logger.debug("%s skipped excluded image %s", self.name, mapping.source)
                    continue
                result = self._process_one(block, mapping, auth, token)
                emit(result)
                if isinstance(result.error, OperationCancelledError):
                    return

        return ResultStream(produce, cancel=token, name=self.name)

    def _process_one(
        self,
        block: Block,
        mapping: ImageMapping,
        auth: Credentials | None,
        cancel: CancelToken,
    ) -> StageResult:
        try:
            planned = self.plan(block, mapping)
        except MaginaError as exc:
            return StageResult(source_image=mapping.source, local_image=mapping.destination, error=exc)

        try:
            self.process(block, planned, auth, cancel)
        except MaginaError as exc:
            logger.info("%s failed for %s: %s", self.name, planned.describe(), exc)
            if self.options.clean_on_error:
                self._cleanup(block, planned, auth)
            return replace(planned, error=exc)
        logger.info("%s ok %s", self.name, planned.describe())
        return planned

    def _cleanup(self, block: Block, planned: StageResult, auth: Credentials | None) -> None:
        try:
            self.cleanup(block, planned, auth)
        except MaginaError as exc:
            error = CleanupError(f"cleanup after failed {self.name} of {planned.describe()} failed: {exc}")
            logger.warning("%s", error)

    @abstractmethod
    def validate(self, block: Block) -> None:
        """Raise ValidationError when ``block`` cannot run through this stage."""

    def prepare(self, block: Block) -> Credentials | None:
        return None

    @abstractmethod
    def excluded(self, block: Block, mapping: ImageMapping) -> bool:
        ...

    @abstractmethod
    def plan(self, block: Block, mapping: ImageMapping) -> StageResult:
        """Addresses the image passes through, as a result without an error."""

    @abstractmethod
    def process(
        self,
        block: Block,
        planned: StageResult,
        auth: Credentials | None,
        cancel: CancelToken,
    ) -> None:
        ...

    @abstractmethod
    def cleanup(self, block: Block, planned: StageResult, auth: Credentials | None) -> None:
        ...

    def _require_transport(self) -> RegistryTransport:
        if self.transport is None:
            raise MaginaError(f"{self.name} stage requires a registry transport")
        return self.transport

    def _require_credentials(self) -> CredentialStore:
        if self.credentials is None:
            raise MaginaError(f"{self.name} stage requires a credential store")
        return self.credentials
