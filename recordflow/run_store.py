from collections.abc import Sequence
from datetime import UTC, date, datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recordflow.db_models import FailedRecord, ImportRun, PublishedRecord
from recordflow.schemas import FieldFailure, RecordFailure


RECORD_LEVEL_FIELD = "$record"


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def get_run_by_key(db: Session, run_key: str) -> ImportRun | None:
    stmt = select(ImportRun).where(ImportRun.run_key == run_key)
    return db.execute(stmt).scalar_one_or_none()


def create_or_get_run(db: Session, *, run_key: str, run_date: date, trigger_source: str) -> tuple[ImportRun, bool]:
    run = ImportRun(run_key=run_key, run_date=run_date, trigger_source=trigger_source, status="queued")
    db.add(run)
    try:
        db.commit()
    except IntegrityError:
        # Unique run_key makes run creation idempotent.
        db.rollback()
        existing = get_run_by_key(db, run_key)
        if existing:
            return existing, False
        raise

    db.refresh(run)
    return run, True


def reset_run_state(db: Session, run: ImportRun) -> None:
    db.execute(delete(FailedRecord).where(FailedRecord.run_id == run.id))
    db.execute(delete(PublishedRecord).where(PublishedRecord.run_id == run.id))

    run.status = "queued"
    run.error = None
    run.completed_at = None
    run.records_read = 0
    run.records_written = 0
    run.failed_records = 0
    db.commit()


def mark_run_running(db: Session, run: ImportRun) -> None:
    run.status = "running"
    run.started_at = utc_now()
    run.error = None
    db.commit()


def mark_run_finished(
    db: Session,
    run: ImportRun,
    *,
    status: str,
    records_read: int,
    records_written: int,
    failed_records: int,
    error: str | None = None,
) -> None:
    run.status = status
    run.records_read = records_read
    run.records_written = records_written
    run.failed_records = failed_records
    run.error = error
    run.completed_at = utc_now()
    db.commit()


def store_record_failures(db: Session, *, run_id: int, failures: Sequence[RecordFailure]) -> None:
    for failure in failures:
        # A failure without field detail still gets one row so the ledger matches failed_records.
        field_failures = failure.failures or (FieldFailure(RECORD_LEVEL_FIELD, f"{failure.stage} failed"),)
        for field_failure in field_failures:
            db.add(
                FailedRecord(
                    run_id=run_id,
                    record_index=failure.record_index,
                    stage=failure.stage,
                    field_name=field_failure.field_name,
                    message=field_failure.message,
                    code=field_failure.code,
                )
            )
    db.commit()
