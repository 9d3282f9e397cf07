from collections.abc import Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import nullcontext
import logging
import threading
from typing import Any

from recordflow.cancellation import CancellationToken
from recordflow.errors import ImportAbortedError, ImportCancelledError, ImportFailedError, RollbackError
from recordflow.events import EventBus, EventKind, RecordEvent
from recordflow.hooks import ImportHooks
from recordflow.interfaces import (
    DataDestination,
    DataSource,
    DataWriter,
    RecordFormatter,
    RecordMapper,
    RecordValidator,
)
from recordflow.schemas import FieldFailure, ImportResult, MapResult, RecordFailure, ValidationResult
from recordflow.writers import WriterRegistry, fan_out_write


logger = logging.getLogger(__name__)

UNBOUNDED = -1


class DataImport:
    def __init__(
        self,
        source: DataSource,
        destinations: DataDestination | Sequence[DataDestination],
        *,
        mapper: RecordMapper | None = None,
        validator: RecordValidator | None = None,
        formatter: RecordFormatter | None = None,
        hooks: ImportHooks | None = None,
        events: EventBus | None = None,
        tolerate_record_failures: bool = False,
        max_writer_concurrency: int | None = None,
    ) -> None:
        if hasattr(destinations, "create_writer"):
            destinations = [destinations]
        if max_writer_concurrency == UNBOUNDED:
            max_writer_concurrency = None
        if max_writer_concurrency is not None and max_writer_concurrency < 1:
            raise ValueError("max_writer_concurrency must be positive, -1 or None")

        self.source = source
        self.destinations: list[DataDestination] = list(destinations)
        self.mapper = mapper
        self.validator = validator
        self.formatter = formatter
        self.hooks = hooks or ImportHooks()
        self.events = events or EventBus()
        self.tolerate_record_failures = tolerate_record_failures
        self.max_writer_concurrency = max_writer_concurrency

        # Unconfigured stages are resolved once here so the record loop never branches on them.
        self._map_stage = self._map if mapper is not None else _pass_through_map
        self._validate_stage = self._validate if validator is not None else _always_valid
        self._format_stage = self._format if formatter is not None else _pass_through_format

        self._failures: list[RecordFailure] = []
        self._run_lock = threading.Lock()

    @property
    def failures(self) -> tuple[RecordFailure, ...]:
        return tuple(self._failures)

    def try_run(self, cancellation: CancellationToken | None = None) -> ImportResult:
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("an import is already running on this instance")
        try:
            return self._try_run(cancellation or CancellationToken.none())
        finally:
            self._run_lock.release()

    def run(self, cancellation: CancellationToken | None = None) -> ImportResult:
        result = self.try_run(cancellation)
        if not result.success:
            raise ImportFailedError(result.failures)
        return result

    def _try_run(self, cancellation: CancellationToken) -> ImportResult:
        self._failures = []
        logger.info(
            "import started",
            extra={
                "destination_count": len(self.destinations),
                "tolerate_record_failures": self.tolerate_record_failures,
                "max_writer_concurrency": self.max_writer_concurrency,
            },
        )

        self.hooks.pre_run()
        registry = WriterRegistry.open_all(self.source, self.destinations)
        try:
            success = self._run_with_writers(registry, cancellation)
        except BaseException:
            registry.dispose_all(raise_errors=False)
            raise
        registry.dispose_all()

        logger.info("import finished", extra={"success": success, "failed_records": len(self._failures)})
        return ImportResult(success=success, failures=tuple(self._failures))

    def _run_with_writers(self, registry: WriterRegistry, cancellation: CancellationToken) -> bool:
        try:
            self._process_records(registry, cancellation)
            self.hooks.pre_commit_or_rollback(tuple(self._failures))
        except Exception as exc:
            self._rollback_from_error(registry, exc)
            raise

        if not self._failures or self.tolerate_record_failures:
            registry.commit_all()
            return True

        logger.info("rolling back import with record failures", extra={"failed_records": len(self._failures)})
        registry.rollback_all()
        return False

    def _rollback_from_error(self, registry: WriterRegistry, error: Exception) -> None:
        if isinstance(error, ImportCancelledError):
            logger.warning("import cancelled, rolling back writers")
        else:
            logger.error("import aborted, rolling back writers", extra={"error": repr(error)})

        try:
            registry.rollback_all()
        except RollbackError as rollback_error:
            raise ImportAbortedError("import failed and rollback failed", [error, rollback_error])

    def _process_records(self, registry: WriterRegistry, cancellation: CancellationToken) -> None:
        reader = self.source.create_reader()
        try:
            reader.open()
            executor_scope = (
                ThreadPoolExecutor(max_workers=self.max_writer_concurrency, thread_name_prefix="recordflow-writer")
                if len(registry) > 1
                else nullcontext()
            )
            with executor_scope as executor:
                record_index = 0
                while True:
                    cancellation.raise_if_cancelled()

                    read = self.hooks.read_record(reader, record_index)
                    if read.found:
                        self._emit(EventKind.RECORD_READ, record_index, read.record)
                        prepared = self._prepare_record(record_index, read.record, registry)
                        if prepared is not None:
                            self._write(record_index, *prepared, executor)
                    elif read.failures:
                        self._add_failure(RecordFailure(record_index, tuple(read.failures), "read"))
                        self._emit(
                            EventKind.RECORD_READ,
                            record_index,
                            read.record,
                            succeeded=False,
                            failures=read.failures,
                        )
                    else:
                        break
                    record_index += 1
        finally:
            reader.close()

    def _prepare_record(
        self,
        record_index: int,
        record: Any,
        registry: WriterRegistry,
    ) -> tuple[Any, Any, list[DataWriter]] | None:
        mapped = self._map_stage(record_index, record)
        if not mapped.ok:
            self._add_failure(RecordFailure(record_index, tuple(mapped.failures), "map"))
            return None

        validation = self._validate_stage(record_index, mapped.record)
        if not validation.ok:
            self._add_failure(RecordFailure(record_index, tuple(validation.failures), "validate"))
            return None

        writers = registry.filtered(mapped.record)
        formatted = self._format_stage(record_index, mapped.record)
        return mapped.record, formatted, writers

    def _write(
        self,
        record_index: int,
        record: Any,
        formatted: Any,
        writers: list[DataWriter],
        executor: Executor | None,
    ) -> None:
        if not writers:
            return
        fan_out_write(executor, writers, lambda writer: self.hooks.write_record(writer, record_index, formatted))
        self._emit(EventKind.RECORD_WRITTEN, record_index, record, output=formatted)

    def _map(self, record_index: int, record: Any) -> MapResult:
        result = self.hooks.map_record(self.mapper, record_index, record)
        self._emit(
            EventKind.RECORD_MAPPED,
            record_index,
            record,
            succeeded=result.ok,
            failures=result.failures,
            output=result.record,
        )
        return result

    def _validate(self, record_index: int, record: Any) -> ValidationResult:
        result = self.hooks.validate_record(self.validator, record_index, record)
        self._emit(EventKind.RECORD_VALIDATED, record_index, record, succeeded=result.ok, failures=result.failures)
        return result

    def _format(self, record_index: int, record: Any) -> Any:
        formatted = self.hooks.format_record(self.formatter, record_index, record)
        self._emit(EventKind.RECORD_FORMATTED, record_index, record, output=formatted)
        return formatted

    def _add_failure(self, failure: RecordFailure) -> None:
        self._failures.append(failure)
        logger.debug(
            "record failed",
            extra={
                "record_index": failure.record_index,
                "stage": failure.stage,
                "fields": [field_failure.field_name for field_failure in failure.failures],
            },
        )
        self.hooks.record_failed(failure)

    def _emit(
        self,
        kind: EventKind,
        record_index: int,
        record: Any,
        *,
        succeeded: bool = True,
        failures: tuple[FieldFailure, ...] = (),
        output: Any = None,
    ) -> None:
        self.events.emit(
            RecordEvent(
                kind=kind,
                record_index=record_index,
                record=record,
                succeeded=succeeded,
                failures=failures,
                output=output,
            )
        )


def _pass_through_map(record_index: int, record: Any) -> MapResult:
    return MapResult(ok=True, record=record)


def _always_valid(record_index: int, record: Any) -> ValidationResult:
    return ValidationResult(ok=True)


def _pass_through_format(record_index: int, record: Any) -> Any:
    return record
