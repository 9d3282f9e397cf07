from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, Executor, wait
import logging
from typing import Any

from recordflow.errors import DisposeError, RollbackError
from recordflow.interfaces import DataDestination, DataSource, DataWriter


logger = logging.getLogger(__name__)


class WriterRegistry:
    def __init__(self) -> None:
        self._entries: list[tuple[DataDestination, DataWriter]] = []

    @classmethod
    def open_all(cls, source: DataSource, destinations: Sequence[DataDestination]) -> "WriterRegistry":
        registry = cls()
        try:
            for destination in destinations:
                writer = destination.create_writer(source)
                writer.open()
                registry._entries.append((destination, writer))
        except Exception:
            logger.error("destination open failed", extra={"opened_writers": len(registry)})
            registry.dispose_all(raise_errors=False)
            raise
        return registry

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def writers(self) -> list[DataWriter]:
        return [writer for _, writer in self._entries]

    def filtered(self, record: Any) -> list[DataWriter]:
        # Evaluated per record since filters may look at record content.
        return [
            writer
            for destination, writer in self._entries
            if destination.record_filter is None or destination.record_filter(record)
        ]

    def commit_all(self) -> None:
        # A commit failure leaves earlier writers committed; nothing reverses them.
        for writer in self.writers:
            writer.commit()
        logger.info("writers committed", extra={"writer_count": len(self)})

    def rollback_all(self) -> None:
        errors: list[Exception] = []
        for writer in self.writers:
            try:
                writer.rollback()
            except Exception as exc:
                logger.error("writer rollback failed", extra={"writer": repr(writer), "error": str(exc)})
                errors.append(exc)

        if errors:
            raise RollbackError("one or more writers failed to roll back", errors)
        logger.info("writers rolled back", extra={"writer_count": len(self)})

    def dispose_all(self, *, raise_errors: bool = True) -> None:
        errors: list[Exception] = []
        for writer in self.writers:
            try:
                writer.close()
            except Exception as exc:
                logger.warning("writer dispose failed", exc_info=exc, extra={"writer": repr(writer)})
                errors.append(exc)
        self._entries.clear()

        if errors and raise_errors:
            raise DisposeError("one or more writers failed to dispose", errors)


def fan_out_write(
    executor: Executor | None,
    writers: Sequence[DataWriter],
    write_one: Callable[[DataWriter], None],
) -> None:
    # Unstarted calls are cancelled on failure; running ones are drained before raising.
    if executor is None or len(writers) <= 1:
        for writer in writers:
            write_one(writer)
        return

    futures = [executor.submit(write_one, writer) for writer in writers]
    _, pending = wait(futures, return_when=FIRST_EXCEPTION)
    if pending:
        for future in pending:
            future.cancel()
        wait(pending)

    for future in futures:
        if future.cancelled():
            continue
        error = future.exception()
        if error is not None:
            raise error
