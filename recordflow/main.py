import argparse
from dataclasses import replace
from datetime import date
import logging

from recordflow.config import get_settings
from recordflow.database import build_session_factory
from recordflow.importer import ContactImportRunner
from recordflow.scheduler import start_scheduler


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import contact records into configured destinations")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="run one import")
    run_parser.add_argument("--run-date", required=True, help="Run date in YYYY-MM-DD format")
    run_parser.add_argument("--run-key", required=False, help="Idempotency key for this run")
    run_parser.add_argument(
        "--trigger-source",
        default="manual",
        choices=["manual", "scheduled"],
        help="Metadata label for how this run was triggered",
    )
    run_parser.add_argument(
        "--tolerate-failures",
        action="store_true",
        help="commit destinations even when some records fail",
    )
    run_parser.add_argument(
        "--max-writer-concurrency",
        type=int,
        default=None,
        help="maximum concurrent destination writes per record (-1 for unbounded)",
    )

    schedule_parser = subparsers.add_parser("schedule", help="start daily scheduler")
    schedule_parser.add_argument("--run-now", action="store_true", help="also run once immediately")

    args = parser.parse_args()
    concurrency = getattr(args, "max_writer_concurrency", None)
    if concurrency is not None and concurrency < 1 and concurrency != -1:
        parser.error("--max-writer-concurrency must be positive or -1")
    return args


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    session_factory = build_session_factory(settings.database_url)
    if args.command == "schedule":
        start_scheduler(settings, session_factory, run_now=args.run_now)
        return

    if args.tolerate_failures:
        settings = replace(settings, tolerate_record_failures=True)
    if args.max_writer_concurrency is not None:
        concurrency = None if args.max_writer_concurrency == -1 else args.max_writer_concurrency
        settings = replace(settings, max_writer_concurrency=concurrency)

    run_date = date.fromisoformat(args.run_date)
    run_key = args.run_key or run_date.isoformat()

    runner = ContactImportRunner(settings, session_factory)
    result = runner.run(
        run_date=run_date,
        run_key=run_key,
        trigger_source=args.trigger_source,
    )

    print(
        "run_id={run_id} run_key={run_key} trigger={trigger} status={status} read={read} written={written} failed={failed} reused={reused}".format(
            run_id=result.run_id,
            run_key=result.run_key,
            trigger=result.trigger_source,
            status=result.status,
            read=result.records_read,
            written=result.records_written,
            failed=result.failed_records,
            reused=result.reused_existing_run,
        )
    )
    if result.status != "succeeded":
        raise SystemExit(1)


if __name__ == "__main__":
    main()
