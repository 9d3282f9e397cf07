import pytest

from recordflow.cancellation import CancellationToken
from recordflow.errors import ImportCancelledError
from recordflow.events import EventBus, EventKind, RecordEvent


def test_bus_dispatches_only_to_matching_kind() -> None:
    bus = EventBus()
    read_events: list[RecordEvent] = []
    bus.subscribe(EventKind.RECORD_READ, read_events.append)

    bus.emit(RecordEvent(EventKind.RECORD_READ, 0, {"a": 1}))
    bus.emit(RecordEvent(EventKind.RECORD_WRITTEN, 0, {"a": 1}))

    assert [event.kind for event in read_events] == [EventKind.RECORD_READ]


def test_bus_calls_handlers_in_subscription_order() -> None:
    bus = EventBus()
    calls: list[str] = []
    bus.subscribe(EventKind.RECORD_MAPPED, lambda event: calls.append("first"))
    bus.subscribe_all(lambda event: calls.append("second"))

    bus.emit(RecordEvent(EventKind.RECORD_MAPPED, 3, None))

    assert calls == ["first", "second"]


def test_unsubscribed_handler_is_not_called() -> None:
    bus = EventBus()
    calls: list[RecordEvent] = []
    bus.subscribe(EventKind.RECORD_FORMATTED, calls.append)
    bus.unsubscribe(EventKind.RECORD_FORMATTED, calls.append)

    bus.emit(RecordEvent(EventKind.RECORD_FORMATTED, 0, None))

    assert calls == []
    assert bus.has_subscribers(EventKind.RECORD_FORMATTED) is False


def test_handler_errors_propagate() -> None:
    bus = EventBus()

    def broken(event: RecordEvent) -> None:
        raise ValueError("observer failed")

    bus.subscribe(EventKind.RECORD_READ, broken)

    with pytest.raises(ValueError):
        bus.emit(RecordEvent(EventKind.RECORD_READ, 0, None))


def test_cancellation_token_raises_once_cancelled() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()

    token.cancel()

    assert token.is_cancelled is True
    with pytest.raises(ImportCancelledError):
        token.raise_if_cancelled()


def test_none_token_cannot_be_cancelled() -> None:
    token = CancellationToken.none()

    assert token.can_be_cancelled is False
    with pytest.raises(RuntimeError):
        token.cancel()
