from collections.abc import Callable
import logging
import time
from typing import TypeVar


logger = logging.getLogger(__name__)
T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    pass


def run_with_retries(
    fn: Callable[[], T],
    *,
    max_retries: int,
    backoff_seconds: float,
    should_retry: Callable[[Exception], bool] | None = None,
    description: str = "operation",
) -> T:
    last_error: Exception | None = None

    for attempt in range(1, max_retries + 2):
        try:
            return fn()
        except Exception as exc:
            last_error = exc
            logger.warning(
                "attempt failed",
                extra={"operation": description, "attempt": attempt, "error": str(exc)},
            )

            if attempt > max_retries or (should_retry is not None and not should_retry(exc)):
                break
            time.sleep(backoff_seconds * attempt)

    raise RetryExhaustedError(f"{description} failed: {last_error}") from last_error
