"""Synchronous event bus for transfer progress notifications."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict

__all__ = ["Event", "EventHandler", "EventBus", "TRANSFER_STATE"]

logger = logging.getLogger(__name__)

TRANSFER_STATE = "transfer.state"


@dataclass(frozen=True)
class Event:
    name: str
    payload: dict[str, Any]


EventHandler = Callable[[Event], None]


@dataclass(frozen=True)
class _EventSubscription:
    priority: int
    order: int
    handler: EventHandler


class EventBus:
    """Deterministic delivery: higher priority first, then registration order.

    Handlers run on the emitting thread, which for transfers is the
    orchestrator's producer thread. A handler that raises is logged and
    does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, list[_EventSubscription]] = defaultdict(list)
        self._sequence: DefaultDict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def on(self, event_name: str, handler: EventHandler, priority: int = 0) -> None:
        with self._lock:
            order = self._sequence[event_name]
            self._sequence[event_name] = order + 1
            self._handlers[event_name].append(
                _EventSubscription(priority=priority, order=order, handler=handler)
            )

    def off(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            self._handlers[event_name] = [
                item for item in self._handlers[event_name] if item.handler is not handler
            ]

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        event = Event(event_name, payload)
        with self._lock:
            subscriptions = sorted(
                self._handlers[event_name],
                key=lambda item: (-item.priority, item.order),
            )
        for subscription in subscriptions:
            try:
                subscription.handler(event)
            except Exception:
                logger.exception("event handler for %s failed", event_name)
