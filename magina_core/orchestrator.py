"""End-to-end transfer: export, convert and import one block."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from .credentials import CredentialStore
from .errors import CredentialError, OperationCancelledError, ValidationError
from .events import TRANSFER_STATE, EventBus
from .model import Block, validate_for_transfer
from .results import Phase, TransferResult
from .stages import STAGE_TYPES, Stage, StageOptions
from .streams import CancelToken, ResultStream, StreamClosed
from .transport import LocalImageStore, RegistryTransport

logger = logging.getLogger(__name__)


class TransferState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    EXPORTING = "exporting"
    CONVERTING = "converting"
    IMPORTING = "importing"
    DONE = "done"
    ABORTED = "aborted"


_PHASE_STATES = {
    Phase.EXPORT: TransferState.EXPORTING,
    Phase.CONVERT: TransferState.CONVERTING,
    Phase.IMPORT: TransferState.IMPORTING,
}


@dataclass(frozen=True)
class TransferOptions:
    resume_on_error: bool = False
    clean_on_error: bool = False


class TransferOrchestrator:
    """Run the three phases in order against one block.

    Every result is forwarded tagged with its phase. Without
    ``resume_on_error`` the first failing result ends the run: the running
    stage is closed, which cancels its in-flight work, and later phases
    never start. Each state change is published on ``events`` as
    ``transfer.state``.
    """

    def __init__(
        self,
        *,
        store: LocalImageStore,
        transport: RegistryTransport,
        credentials: CredentialStore,
        events: EventBus | None = None,
        options: TransferOptions | None = None,
    ) -> None:
        self.store = store
        self.transport = transport
        self.credentials = credentials
        self.events = events or EventBus()
        self.options = options or TransferOptions()
        self._state = TransferState.IDLE
        self._state_lock = threading.Lock()

    @property
    def state(self) -> TransferState:
        with self._state_lock:
            return self._state

    def stage(self, phase: Phase) -> Stage:
        return STAGE_TYPES[phase](
            store=self.store,
            transport=self.transport,
            credentials=self.credentials,
            options=StageOptions(clean_on_error=self.options.clean_on_error),
        )

    def run(self, block: Block, *, cancel: CancelToken | None = None) -> ResultStream[TransferResult]:
        token = cancel.child() if cancel is not None else CancelToken()

        def produce(emit) -> None:
            try:
                self._drive(block, token, emit)
            except StreamClosed:
                self._transition(TransferState.ABORTED)
                raise
            except BaseException:
                logger.exception("transfer failed unexpectedly")
                self._transition(TransferState.ABORTED)
                raise

        return ResultStream(produce, cancel=token, name="transfer")

    def _drive(self, block: Block, token: CancelToken, emit) -> None:
        self._transition(TransferState.VALIDATING)
        try:
            validate_for_transfer(block)
        except ValidationError as exc:
            logger.error("transfer: %s", exc)
            emit(TransferResult(error=exc))
            self._transition(TransferState.ABORTED)
            return

        for phase, host in (
            (Phase.EXPORT, block.source_registry.host),
            (Phase.IMPORT, block.destination_registry.host),
        ):
            try:
                self.credentials.resolve(host)
            except CredentialError as exc:
                logger.error("transfer: %s", exc)
                emit(TransferResult(phase=phase, error=exc))
                self._transition(TransferState.ABORTED)
                return

        for phase in Phase.ordered():
            if token.cancelled:
                logger.info("transfer stopped before %s: %s", phase.value.lower(), token.reason)
                self._transition(TransferState.ABORTED)
                return
            self._transition(_PHASE_STATES[phase])
            if not self._run_phase(phase, block, token, emit):
                self._transition(TransferState.ABORTED)
                return

        self._transition(TransferState.DONE)

    def _run_phase(self, phase: Phase, block: Block, token: CancelToken, emit) -> bool:
        """Forward one phase's results; False means the transfer must abort."""

        with self.stage(phase).run(block, cancel=token) as stream:
            for result in stream:
                emit(TransferResult.from_stage(phase, result))
                if result.ok:
                    continue
                if isinstance(result.error, OperationCancelledError):
                    return False
                if not self.options.resume_on_error:
                    logger.info("transfer aborted after failed %s: %s", phase.value.lower(), result.error)
                    return False
        return not token.cancelled

    def _transition(self, state: TransferState) -> None:
        with self._state_lock:
            previous = self._state
            self._state = state
        logger.debug("transfer state %s -> %s", previous.value, state.value)
        self.events.emit(TRANSFER_STATE, {"state": state.value, "previous": previous.value})
