from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from recordflow.schemas import FieldFailure


class EventKind(str, Enum):
    RECORD_READ = "record_read"
    RECORD_MAPPED = "record_mapped"
    RECORD_VALIDATED = "record_validated"
    RECORD_FORMATTED = "record_formatted"
    RECORD_WRITTEN = "record_written"


@dataclass(frozen=True)
class RecordEvent:
    # output is the mapped record for RECORD_MAPPED and the formatted record otherwise.
    kind: EventKind
    record_index: int
    record: Any
    succeeded: bool = True
    failures: tuple[FieldFailure, ...] = ()
    output: Any = None


EventHandler = Callable[[RecordEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[EventKind, list[EventHandler]] = {kind: [] for kind in EventKind}

    def subscribe(self, kind: EventKind, handler: EventHandler) -> None:
        self._subscribers[kind].append(handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        for kind in EventKind:
            self._subscribers[kind].append(handler)

    def unsubscribe(self, kind: EventKind, handler: EventHandler) -> None:
        self._subscribers[kind].remove(handler)

    def has_subscribers(self, kind: EventKind) -> bool:
        return bool(self._subscribers[kind])

    def emit(self, event: RecordEvent) -> None:
        for handler in list(self._subscribers[event.kind]):
            handler(event)
