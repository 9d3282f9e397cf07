import pytest

from recordflow.retry import RetryExhaustedError, run_with_retries


def test_retries_until_success() -> None:
    attempts: list[int] = []

    def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("not yet")
        return "ok"

    assert run_with_retries(flaky, max_retries=2, backoff_seconds=0) == "ok"
    assert len(attempts) == 3


def test_non_retryable_error_stops_immediately() -> None:
    attempts: list[int] = []

    def broken() -> None:
        attempts.append(1)
        raise ValueError("bad config")

    with pytest.raises(RetryExhaustedError) as exc_info:
        run_with_retries(
            broken,
            max_retries=5,
            backoff_seconds=0,
            should_retry=lambda exc: not isinstance(exc, ValueError),
        )

    assert len(attempts) == 1
    assert isinstance(exc_info.value.__cause__, ValueError)
