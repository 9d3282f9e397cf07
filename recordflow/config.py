from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    input_dir: str
    output_dir: str
    tolerate_record_failures: bool
    max_writer_concurrency: int | None
    max_open_retries: int
    retry_backoff_seconds: float
    schedule_hour_utc: int
    schedule_minute_utc: int


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw or raw == "-1":
        return None
    value = int(raw)
    if value < 1:
        raise ValueError(f"{name} must be positive or -1, got {value}")
    return value


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "recordflow"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./recordflow.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        input_dir=os.getenv("INPUT_DIR", "./data/input"),
        output_dir=os.getenv("OUTPUT_DIR", "./outputs"),
        tolerate_record_failures=_env_bool("TOLERATE_RECORD_FAILURES", "false"),
        max_writer_concurrency=_env_optional_int("MAX_WRITER_CONCURRENCY"),
        max_open_retries=int(os.getenv("MAX_OPEN_RETRIES", "2")),
        retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
        schedule_hour_utc=int(os.getenv("SCHEDULE_HOUR_UTC", "2")),
        schedule_minute_utc=int(os.getenv("SCHEDULE_MINUTE_UTC", "0")),
    )
