from collections.abc import Sequence
from typing import Any

from recordflow.interfaces import DataReader, DataWriter, RecordFormatter, RecordMapper, RecordValidator
from recordflow.schemas import MapResult, ReadResult, RecordFailure, ValidationResult


class ImportHooks:
    def pre_run(self) -> None:
        pass

    def pre_commit_or_rollback(self, failures: Sequence[RecordFailure]) -> None:
        pass

    def record_failed(self, failure: RecordFailure) -> None:
        pass

    def read_record(self, reader: DataReader, record_index: int) -> ReadResult:
        return reader.try_read()

    def map_record(self, mapper: RecordMapper, record_index: int, record: Any) -> MapResult:
        return mapper.try_map(record)

    def validate_record(self, validator: RecordValidator, record_index: int, record: Any) -> ValidationResult:
        return validator.try_validate(record)

    def format_record(self, formatter: RecordFormatter, record_index: int, record: Any) -> Any:
        return formatter.format(record)

    def write_record(self, writer: DataWriter, record_index: int, formatted_record: Any) -> None:
        writer.write(formatted_record)
