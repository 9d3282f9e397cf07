import json
import logging
import threading
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from recordflow.db_models import PublishedRecord
from recordflow.interfaces import DataSource, RecordFilter
from recordflow.retry import run_with_retries


logger = logging.getLogger(__name__)


class SqlRecordWriter:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        run_id: int,
        max_open_retries: int,
        retry_backoff_seconds: float,
    ) -> None:
        self.session_factory = session_factory
        self.run_id = run_id
        self.max_open_retries = max_open_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._session: Session | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"SqlRecordWriter(run_id={self.run_id})"

    def open(self) -> None:
        session = self.session_factory()
        try:
            run_with_retries(
                lambda: session.execute(text("SELECT 1")),
                max_retries=self.max_open_retries,
                backoff_seconds=self.retry_backoff_seconds,
                should_retry=lambda exc: isinstance(exc, OperationalError),
                description="open sql destination",
            )
        except Exception:
            session.close()
            raise
        self._session = session

    def write(self, record: dict[str, Any]) -> None:
        row = PublishedRecord(
            run_id=self.run_id,
            record_key=str(record["record_key"]),
            payload=json.dumps(record, sort_keys=True),
        )
        # Session is not thread safe; fan-out writes share it.
        with self._lock:
            self._require_session().add(row)

    def commit(self) -> None:
        self._require_session().commit()
        logger.debug("sql destination committed", extra={"run_id": self.run_id})

    def rollback(self) -> None:
        self._require_session().rollback()

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def _require_session(self) -> Session:
        if self._session is None:
            raise RuntimeError("writer is not open")
        return self._session


class SqlDestination:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        run_id: int,
        max_open_retries: int = 0,
        retry_backoff_seconds: float = 0,
        record_filter: RecordFilter | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.run_id = run_id
        self.max_open_retries = max_open_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self.record_filter = record_filter

    def create_writer(self, source: DataSource) -> SqlRecordWriter:
        return SqlRecordWriter(
            self.session_factory,
            run_id=self.run_id,
            max_open_retries=self.max_open_retries,
            retry_backoff_seconds=self.retry_backoff_seconds,
        )
