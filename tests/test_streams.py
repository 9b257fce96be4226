"""Tests for cancellation tokens and result streams."""

import threading
import time

import pytest

from magina_core.errors import OperationCancelledError
from magina_core.streams import CancelToken, ResultStream


def test_child_token_follows_parent() -> None:
    parent = CancelToken()
    child = parent.child()
    assert not child.cancelled
    parent.cancel("stop")
    assert child.cancelled
    assert child.reason == "stop"
    with pytest.raises(OperationCancelledError, match="stop"):
        child.raise_if_cancelled()


def test_cancelling_child_leaves_parent_running() -> None:
    parent = CancelToken()
    child = parent.child()
    child.cancel()
    assert child.cancelled
    assert not parent.cancelled


def test_deadline_expires() -> None:
    token = CancelToken.with_timeout(0)
    assert token.cancelled
    assert token.reason == "deadline exceeded"
    assert token.remaining() == 0.0
    assert CancelToken().remaining() is None


def test_stream_yields_items_in_order() -> None:
    def produce(emit) -> None:
        for value in range(5):
            emit(value)

    with ResultStream(produce) as stream:
        assert list(stream) == [0, 1, 2, 3, 4]


def test_stream_reraises_producer_failure() -> None:
    def produce(emit) -> None:
        emit("first")
        raise ValueError("boom")

    stream = ResultStream(produce)
    items = []
    with pytest.raises(ValueError, match="boom"):
        for item in stream:
            items.append(item)
    stream.close()
    assert items == ["first"]


def test_emit_waits_for_the_consumer_to_ask_again() -> None:
    produced: list[int] = []
    gate = threading.Event()

    def produce(emit) -> None:
        for value in range(10):
            produced.append(value)
            emit(value)
        gate.set()

    stream = ResultStream(produce)
    iterator = iter(stream)
    assert next(iterator) == 0
    time.sleep(0.2)
    assert produced == [0]
    assert next(iterator) == 1
    time.sleep(0.2)
    assert produced == [0, 1]
    stream.close()
    assert not gate.is_set()


def test_close_releases_a_producer_waiting_in_emit() -> None:
    reached: list[str] = []
    token = CancelToken()

    def produce(emit) -> None:
        emit("ready")
        reached.append("after-ready")

    stream = ResultStream(produce, cancel=token)
    iterator = iter(stream)
    assert next(iterator) == "ready"
    stream.close()
    assert reached == []
    assert token.cancelled
    assert stream.closed
    assert list(stream) == []


def test_close_cancels_work_started_after_a_handoff() -> None:
    started = threading.Event()
    observed: list[bool] = []
    token = CancelToken()

    def produce(emit) -> None:
        emit("ready")
        started.set()
        while not token.cancelled:
            time.sleep(0.01)
        observed.append(True)

    stream = ResultStream(produce, cancel=token)
    results: list[str] = []
    consumer = threading.Thread(target=lambda: results.extend(stream), daemon=True)
    consumer.start()
    assert started.wait(1)
    stream.close()
    consumer.join(1)
    assert observed == [True]
    assert results == ["ready"]
    assert not consumer.is_alive()


def test_close_after_completion_does_not_cancel() -> None:
    token = CancelToken()
    stream = ResultStream(lambda emit: emit(1), cancel=token)
    assert list(stream) == [1]
    stream.close()
    assert not token.cancelled
