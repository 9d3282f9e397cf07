from datetime import date

from sqlalchemy import select

from recordflow.db_models import FailedRecord
from recordflow.run_store import RECORD_LEVEL_FIELD, create_or_get_run, store_record_failures
from recordflow.schemas import FieldFailure, RecordFailure


def test_failures_without_field_detail_still_get_a_row(runner) -> None:
    with runner.session_factory() as db:
        run, _ = create_or_get_run(db, run_key="ledger-1", run_date=date(2026, 3, 1), trigger_source="manual")

        store_record_failures(db, run_id=run.id, failures=(RecordFailure(3, (), "map"),))

        rows = db.execute(select(FailedRecord).where(FailedRecord.run_id == run.id)).scalars().all()
        assert [(row.record_index, row.stage, row.field_name) for row in rows] == [(3, "map", RECORD_LEVEL_FIELD)]
        assert rows[0].code is None


def test_failure_codes_are_persisted(runner) -> None:
    failures = (
        RecordFailure(0, (FieldFailure("age", "age must be an integer", "not_an_integer"),), "map"),
        RecordFailure(2, (FieldFailure("email", "email format is invalid", "invalid_format"),), "validate"),
    )

    with runner.session_factory() as db:
        run, _ = create_or_get_run(db, run_key="ledger-2", run_date=date(2026, 3, 2), trigger_source="manual")

        store_record_failures(db, run_id=run.id, failures=failures)

        rows = db.execute(
            select(FailedRecord).where(FailedRecord.run_id == run.id).order_by(FailedRecord.record_index)
        ).scalars().all()
        assert [(row.record_index, row.code) for row in rows] == [(0, "not_an_integer"), (2, "invalid_format")]
