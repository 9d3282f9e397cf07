from datetime import date
import logging
from pathlib import Path

from sqlalchemy.orm import Session, sessionmaker

from recordflow.cancellation import CancellationToken
from recordflow.config import Settings
from recordflow.contacts import ContactFormatter, ContactMapper, ContactValidator, is_partner_contact
from recordflow.db_models import ImportRun
from recordflow.errors import ImportCancelledError
from recordflow.events import EventBus, EventKind, RecordEvent
from recordflow.jsonl import JsonlFileDestination, JsonlSource
from recordflow.pipeline import DataImport
from recordflow.run_store import (
    create_or_get_run,
    mark_run_finished,
    mark_run_running,
    reset_run_state,
    store_record_failures,
)
from recordflow.schemas import ImportSummary, RecordFailure
from recordflow.sql_writer import SqlDestination


logger = logging.getLogger(__name__)


class RecordCounter:
    def __init__(self) -> None:
        self.read = 0
        self.written = 0

    def attach(self, events: EventBus) -> None:
        events.subscribe(EventKind.RECORD_READ, self._on_read)
        events.subscribe(EventKind.RECORD_WRITTEN, self._on_written)

    def _on_read(self, event: RecordEvent) -> None:
        self.read += 1

    def _on_written(self, event: RecordEvent) -> None:
        self.written += 1


class ContactImportRunner:
    def __init__(self, settings: Settings, session_factory: sessionmaker[Session]) -> None:
        self.settings = settings
        self.session_factory = session_factory

    def run(
        self,
        *,
        run_date: date,
        run_key: str,
        trigger_source: str = "manual",
        cancellation: CancellationToken | None = None,
    ) -> ImportSummary:
        with self.session_factory() as db:
            run, created = create_or_get_run(
                db,
                run_key=run_key,
                run_date=run_date,
                trigger_source=trigger_source,
            )
            if not created:
                if run.status in ("failed", "cancelled"):
                    # Keep the same run key and clear prior failed state.
                    logger.info("retrying previously failed run", extra={"run_key": run_key})
                    reset_run_state(db, run)
                else:
                    logger.info("idempotent run reused", extra={"run_key": run_key, "status": run.status})
                    return self._summary_from_run(run, reused_existing_run=True)

            mark_run_running(db, run)
            run_id = run.id

            counter = RecordCounter()
            data_import = self.build_import(run_date=run_date, run_key=run_key, run_id=run_id)
            counter.attach(data_import.events)

            error: str | None = None
            failures: tuple[RecordFailure, ...]
            try:
                result = data_import.try_run(cancellation)
            except ImportCancelledError as exc:
                logger.warning("import run cancelled", extra={"run_key": run_key})
                status, error, failures = "cancelled", str(exc), data_import.failures
            except Exception as exc:
                logger.exception("import run failed", extra={"run_key": run_key})
                status, error, failures = "failed", str(exc), data_import.failures
            else:
                failures = result.failures
                status = "succeeded" if result.success else "failed"
                if not result.success:
                    error = f"{len(failures)} record(s) failed; import rolled back"

            store_record_failures(db, run_id=run_id, failures=failures)
            mark_run_finished(
                db,
                run,
                status=status,
                records_read=counter.read,
                records_written=counter.written if status == "succeeded" else 0,
                failed_records=len(failures),
                error=error,
            )
            return self._summary_from_run(run, reused_existing_run=False)

    def build_import(self, *, run_date: date, run_key: str, run_id: int) -> DataImport:
        output_root = Path(self.settings.output_dir)
        source = JsonlSource(self.input_path(run_date))
        destinations = [
            SqlDestination(
                self.session_factory,
                run_id=run_id,
                max_open_retries=self.settings.max_open_retries,
                retry_backoff_seconds=self.settings.retry_backoff_seconds,
            ),
            JsonlFileDestination(output_root / "published" / f"{run_key}.jsonl"),
            JsonlFileDestination(output_root / "partner" / f"{run_key}.jsonl", record_filter=is_partner_contact),
        ]
        return DataImport(
            source,
            destinations,
            mapper=ContactMapper(),
            validator=ContactValidator(),
            formatter=ContactFormatter(),
            tolerate_record_failures=self.settings.tolerate_record_failures,
            max_writer_concurrency=self.settings.max_writer_concurrency,
        )

    def input_path(self, run_date: date) -> Path:
        return Path(self.settings.input_dir) / f"contacts-{run_date.isoformat()}.jsonl"

    def _summary_from_run(self, run: ImportRun, reused_existing_run: bool) -> ImportSummary:
        return ImportSummary(
            run_id=run.id,
            run_key=run.run_key,
            run_date=run.run_date,
            trigger_source=run.trigger_source,
            status=run.status,
            records_read=run.records_read,
            records_written=run.records_written,
            failed_records=run.failed_records,
            error=run.error,
            reused_existing_run=reused_existing_run,
        )
