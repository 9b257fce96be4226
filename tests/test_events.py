"""Unit tests for the EventBus."""

from magina_core.events import EventBus


def test_event_handlers_run_in_priority_order() -> None:
    bus = EventBus()
    seen: list[str] = []

    def make_handler(label: str):
        def handler(event):
            seen.append(f"{label}:{event.payload['value']}")

        return handler

    bus.on("transfer.state", make_handler("one"), priority=0)
    bus.on("transfer.state", make_handler("two"), priority=0)
    bus.on("transfer.state", make_handler("high"), priority=5)
    bus.on("transfer.state", make_handler("low"), priority=-1)
    bus.emit("transfer.state", {"value": "ok"})

    assert seen == ["high:ok", "one:ok", "two:ok", "low:ok"]


def test_failing_handler_does_not_stop_delivery() -> None:
    bus = EventBus()
    recorded: list[str] = []

    def broken(event):
        raise RuntimeError("handler bug")

    bus.on("transfer.state", broken, priority=1)
    bus.on("transfer.state", lambda event: recorded.append(event.name))
    bus.emit("transfer.state", {})
    assert recorded == ["transfer.state"]


def test_off_removes_handler() -> None:
    bus = EventBus()
    recorded: list[str] = []

    def handler(event):
        recorded.append(event.name)

    bus.on("transfer.state", handler)
    bus.off("transfer.state", handler)
    bus.emit("transfer.state", {})
    assert recorded == []
