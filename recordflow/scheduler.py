from datetime import UTC, datetime
import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from sqlalchemy.orm import Session, sessionmaker

from recordflow.config import Settings
from recordflow.importer import ContactImportRunner


logger = logging.getLogger(__name__)


def _run_daily_import(settings: Settings, session_factory: sessionmaker[Session]) -> None:
    run_date = datetime.now(UTC).date()
    run_key = f"scheduled-{run_date.isoformat()}"

    runner = ContactImportRunner(settings, session_factory)
    result = runner.run(run_date=run_date, run_key=run_key, trigger_source="scheduled")
    context = {
        "run_key": result.run_key,
        "status": result.status,
        "failed_records": result.failed_records,
        "reused_existing_run": result.reused_existing_run,
    }
    if result.status != "succeeded":
        logger.error("scheduled import failed", extra=context)
        return
    logger.info("scheduled import completed", extra=context)


def start_scheduler(settings: Settings, session_factory: sessionmaker[Session], *, run_now: bool = False) -> None:
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        _run_daily_import,
        "cron",
        args=[settings, session_factory],
        hour=settings.schedule_hour_utc,
        minute=settings.schedule_minute_utc,
        id="daily_import",
        replace_existing=True,
    )

    logger.info(
        "scheduler started",
        extra={
            "schedule_hour_utc": settings.schedule_hour_utc,
            "schedule_minute_utc": settings.schedule_minute_utc,
        },
    )

    if run_now:
        _run_daily_import(settings, session_factory)

    scheduler.start()
