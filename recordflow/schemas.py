from dataclasses import dataclass, field
from datetime import date
from typing import Any


@dataclass(frozen=True)
class FieldFailure:
    field_name: str
    message: str
    code: str | None = None


@dataclass(frozen=True)
class RecordFailure:
    record_index: int
    failures: tuple[FieldFailure, ...]
    stage: str = "read"


@dataclass(frozen=True)
class ReadResult:
    # found=False with no failures ends the stream.
    found: bool
    record: Any = None
    failures: tuple[FieldFailure, ...] = ()

    @classmethod
    def of(cls, record: Any) -> "ReadResult":
        return cls(found=True, record=record)

    @classmethod
    def failed(cls, failures: list[FieldFailure] | tuple[FieldFailure, ...]) -> "ReadResult":
        return cls(found=False, failures=tuple(failures))

    @classmethod
    def end(cls) -> "ReadResult":
        return cls(found=False)


@dataclass(frozen=True)
class MapResult:
    ok: bool
    record: Any = None
    failures: tuple[FieldFailure, ...] = ()


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    failures: tuple[FieldFailure, ...] = ()


@dataclass(frozen=True)
class ImportResult:
    success: bool
    failures: tuple[RecordFailure, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ImportSummary:
    run_id: int
    run_key: str
    run_date: date
    trigger_source: str
    status: str
    records_read: int
    records_written: int
    failed_records: int
    error: str | None
    reused_existing_run: bool
