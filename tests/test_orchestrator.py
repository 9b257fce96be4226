"""Tests for the three-phase transfer orchestrator."""

import pytest

from magina_core.credentials import CredentialStore
from magina_core.errors import CredentialError, RegistryIOError, ValidationError
from magina_core.events import TRANSFER_STATE, EventBus
from magina_core.model import Block
from magina_core.orchestrator import TransferOptions, TransferOrchestrator, TransferState
from magina_core.results import Phase
from magina_core.streams import CancelToken

from conftest import collect, make_block

NAMES = ("a", "b", "c")
MAPPINGS = [(f"library/{name}:1", f"mirror/{name}:1") for name in NAMES]


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def states(bus: EventBus) -> list[tuple[str, str]]:
    seen: list[tuple[str, str]] = []
    bus.on(TRANSFER_STATE, lambda event: seen.append((event.payload["previous"], event.payload["state"])))
    return seen


@pytest.fixture
def populated(transport):
    for name in NAMES:
        transport.remote[f"src.example.com/library/{name}:1"] = f"image-{name}"
    return transport


def _orchestrator(store, transport, credentials, bus, **options) -> TransferOrchestrator:
    return TransferOrchestrator(
        store=store,
        transport=transport,
        credentials=credentials,
        events=bus,
        options=TransferOptions(**options),
    )


def test_transfer_runs_all_phases(store, populated, credentials, bus, states) -> None:
    orchestrator = _orchestrator(store, populated, credentials, bus)

    results = collect(orchestrator.run(make_block(MAPPINGS)))

    assert [result.phase for result in results] == [Phase.EXPORT] * 3 + [Phase.CONVERT] * 3 + [Phase.IMPORT] * 3
    assert all(result.ok for result in results)
    assert orchestrator.state == TransferState.DONE
    for name in NAMES:
        assert populated.remote[f"dst.example.com/mirror/{name}:1"] == f"image-{name}"
    assert states == [
        ("idle", "validating"),
        ("validating", "exporting"),
        ("exporting", "converting"),
        ("converting", "importing"),
        ("importing", "done"),
    ]


def test_abort_after_first_export_failure(store, populated, credentials, bus, states) -> None:
    populated.failures["src.example.com/library/b:1"] = RegistryIOError("pull failed")
    orchestrator = _orchestrator(store, populated, credentials, bus)

    results = collect(orchestrator.run(make_block(MAPPINGS)))

    assert [result.phase for result in results] == [Phase.EXPORT, Phase.EXPORT]
    assert [result.ok for result in results] == [True, False]
    assert orchestrator.state == TransferState.ABORTED
    assert states[-1] == ("exporting", "aborted")
    assert ("fetch", "src.example.com/library/c:1") not in populated.calls


def test_resume_runs_later_phases(store, populated, credentials, bus) -> None:
    populated.failures["src.example.com/library/b:1"] = RegistryIOError("pull failed")
    orchestrator = _orchestrator(store, populated, credentials, bus, resume_on_error=True)

    results = collect(orchestrator.run(make_block(MAPPINGS)))

    by_phase = {phase: [r for r in results if r.phase is phase] for phase in Phase.ordered()}
    assert all(len(items) == 3 for items in by_phase.values())
    for phase in Phase.ordered():
        assert [r.ok for r in by_phase[phase]] == [True, False, True]
    assert orchestrator.state == TransferState.DONE
    assert "dst.example.com/mirror/a:1" in populated.remote
    assert "dst.example.com/mirror/b:1" not in populated.remote
    assert "dst.example.com/mirror/c:1" in populated.remote


def test_invalid_block_yields_one_untagged_result(store, transport, credentials, bus) -> None:
    orchestrator = _orchestrator(store, transport, credentials, bus)
    block = Block.build(source="https://src.example.com", mappings=MAPPINGS)

    results = collect(orchestrator.run(block))

    assert len(results) == 1
    assert results[0].phase is None
    assert isinstance(results[0].error, ValidationError)
    assert orchestrator.state == TransferState.ABORTED


def test_destination_credential_failure_is_tagged_import(store, transport, bus) -> None:
    credentials = CredentialStore(environ={"DST_EXAMPLE_COM_PASSWORD": "pw"}, allow_prompt=False)
    orchestrator = _orchestrator(store, transport, credentials, bus)

    results = collect(orchestrator.run(make_block(MAPPINGS)))

    assert len(results) == 1
    assert results[0].phase is Phase.IMPORT
    assert isinstance(results[0].error, CredentialError)
    assert transport.calls == []


def test_source_credential_failure_is_tagged_export(store, transport, bus) -> None:
    credentials = CredentialStore(environ={"SRC_EXAMPLE_COM_USERNAME": "bot"}, allow_prompt=False)
    results = collect(_orchestrator(store, transport, credentials, bus).run(make_block(MAPPINGS)))
    assert [result.phase for result in results] == [Phase.EXPORT]


def test_cancelled_run_aborts_without_work(store, populated, credentials, bus) -> None:
    token = CancelToken()
    token.cancel()
    orchestrator = _orchestrator(store, populated, credentials, bus)

    results = collect(orchestrator.run(make_block(MAPPINGS), cancel=token))

    assert results == []
    assert orchestrator.state == TransferState.ABORTED
    assert populated.calls == []


def test_closing_the_stream_aborts(store, populated, credentials, bus) -> None:
    orchestrator = _orchestrator(store, populated, credentials, bus)
    stream = orchestrator.run(make_block(MAPPINGS))
    first = next(iter(stream))
    stream.close()

    assert first.phase is Phase.EXPORT
    assert orchestrator.state == TransferState.ABORTED


def test_unexpected_stage_error_reaches_consumer_and_aborts(store, populated, credentials, bus, states) -> None:
    populated.failures["src.example.com/library/a:1"] = OSError("disk unavailable")
    orchestrator = _orchestrator(store, populated, credentials, bus)

    with pytest.raises(OSError, match="disk unavailable"):
        collect(orchestrator.run(make_block(MAPPINGS)))

    assert orchestrator.state == TransferState.ABORTED
    assert states[-1] == ("exporting", "aborted")
