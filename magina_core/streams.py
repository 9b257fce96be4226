"""Cancellation tokens and producer-backed result streams."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Generic, Iterator, TypeVar

from .errors import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PUT_INTERVAL = 0.05


class CancelToken:
    """Cooperative cancellation signal with an optional monotonic deadline."""

    def __init__(self, *, deadline: float | None = None, parent: "CancelToken | None" = None) -> None:
        self._event = threading.Event()
        self._reason = "operation cancelled"
        self.deadline = deadline
        self.parent = parent

    @classmethod
    def with_timeout(cls, seconds: float | None) -> "CancelToken":
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + max(float(seconds), 0.0))

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return True
        return self.parent is not None and self.parent.cancelled

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return self._reason
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return "deadline exceeded"
        if self.parent is not None and self.parent.cancelled:
            return self.parent.reason
        return ""

    def remaining(self) -> float | None:
        """Seconds left before the closest deadline in the chain, if any."""

        candidates: list[float] = []
        token: CancelToken | None = self
        while token is not None:
            if token.deadline is not None:
                candidates.append(token.deadline - time.monotonic())
            token = token.parent
        if not candidates:
            return None
        return max(min(candidates), 0.0)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError(self.reason)


class StreamClosed(Exception):
    """Raised inside a producer when its consumer closed the stream."""


class _Done:
    pass


class _Failure:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc


Emit = Callable[[T], None]
Producer = Callable[[Emit], None]


class ResultStream(Generic[T]):
    """Single-consumer stream fed by one background producer thread.

    Each emit is a hand-off: it returns only once the consumer has asked for
    the next item, so a consumer that stops after a result also stops the
    producer before it starts further work. Closing the stream cancels
    ``cancel``, which stops the producer at its pending emit or transport call.
    """

    def __init__(self, producer: Producer, *, cancel: CancelToken | None = None, name: str = "stream") -> None:
        self.cancel = cancel or CancelToken()
        self.name = name
        self._queue: queue.Queue[object] = queue.Queue(maxsize=1)
        self._closed = threading.Event()
        self._finished = False
        self._thread = threading.Thread(
            target=self._work,
            args=(producer,),
            name=f"magina-{name}",
            daemon=True,
        )
        self._thread.start()

    def _emit(self, item: T) -> None:
        self._put(item)
        self._await_handoff()

    def _put(self, item: object) -> None:
        while True:
            if self._closed.is_set():
                raise StreamClosed()
            try:
                self._queue.put(item, timeout=_PUT_INTERVAL)
                return
            except queue.Full:
                continue

    def _await_handoff(self) -> None:
        done = self._queue.all_tasks_done
        with done:
            while self._queue.unfinished_tasks:
                if self._closed.is_set():
                    raise StreamClosed()
                done.wait(_PUT_INTERVAL)

    def _work(self, producer: Producer) -> None:
        try:
            producer(self._emit)
        except StreamClosed:
            logger.debug("%s closed by consumer", self.name)
            return
        except BaseException as exc:  # handed to the consumer thread
            try:
                self._put(_Failure(exc))
            except StreamClosed:
                logger.debug("%s failed after close: %s", self.name, exc)
            return
        try:
            self._put(_Done())
        except StreamClosed:
            return

    def __iter__(self) -> Iterator[T]:
        while not self._finished:
            if self._closed.is_set():
                return
            try:
                item = self._queue.get(timeout=_PUT_INTERVAL)
            except queue.Empty:
                continue
            if isinstance(item, _Done):
                self._finished = True
                return
            if isinstance(item, _Failure):
                self._finished = True
                raise item.exc
            yield item  # type: ignore[misc]
            # the consumer asked for more: release the producer
            self._queue.task_done()

    def close(self) -> None:
        """Stop consuming; cancels outstanding producer work and joins it."""

        if self._closed.is_set():
            return
        self._closed.set()
        if not self._finished:
            self.cancel.cancel("result stream closed by consumer")
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
        self._thread.join()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def __enter__(self) -> "ResultStream[T]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
