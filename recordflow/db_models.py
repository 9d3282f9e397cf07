from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class ImportRun(Base):
    __tablename__ = "import_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_key: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    run_date: Mapped[date] = mapped_column(Date)
    trigger_source: Mapped[str] = mapped_column(String(32), default="manual")
    status: Mapped[str] = mapped_column(String(32), default="queued")
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    records_read: Mapped[int] = mapped_column(Integer, default=0)
    records_written: Mapped[int] = mapped_column(Integer, default=0)
    failed_records: Mapped[int] = mapped_column(Integer, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    failures: Mapped[list["FailedRecord"]] = relationship(back_populates="run", cascade="all, delete-orphan")


class FailedRecord(Base):
    __tablename__ = "failed_records"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("import_runs.id", ondelete="CASCADE"), index=True)
    record_index: Mapped[int] = mapped_column(Integer)
    stage: Mapped[str] = mapped_column(String(32))
    field_name: Mapped[str] = mapped_column(String(128))
    message: Mapped[str] = mapped_column(Text)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    run: Mapped[ImportRun] = relationship(back_populates="failures")


class PublishedRecord(Base):
    __tablename__ = "published_records"
    __table_args__ = (UniqueConstraint("run_id", "record_key", name="uq_run_record_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("import_runs.id", ondelete="CASCADE"), index=True)
    record_key: Mapped[str] = mapped_column(String(128))
    payload: Mapped[str] = mapped_column(Text)
