from collections.abc import Callable
from typing import Any, Protocol

from recordflow.schemas import MapResult, ReadResult, ValidationResult


RecordFilter = Callable[[Any], bool]


class DataReader(Protocol):
    def open(self) -> None: ...

    def try_read(self) -> ReadResult: ...

    def close(self) -> None: ...


class DataSource(Protocol):
    def create_reader(self) -> DataReader: ...


class DataWriter(Protocol):
    # write may run concurrently; commit, rollback and close only follow the last write.
    def open(self) -> None: ...

    def write(self, record: Any) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def close(self) -> None: ...


class DataDestination(Protocol):
    record_filter: RecordFilter | None

    def create_writer(self, source: DataSource) -> DataWriter: ...


class RecordMapper(Protocol):
    def try_map(self, record: Any) -> MapResult: ...


class RecordValidator(Protocol):
    def try_validate(self, record: Any) -> ValidationResult: ...


class RecordFormatter(Protocol):
    def format(self, record: Any) -> Any: ...
