from collections.abc import Sequence

from recordflow.schemas import RecordFailure


class ImportFailedError(RuntimeError):
    def __init__(self, failures: Sequence[RecordFailure], message: str = "data import failed") -> None:
        super().__init__(f"{message}: {len(failures)} record failure(s)")
        self.failures = tuple(failures)


class ImportCancelledError(RuntimeError):
    pass


class RollbackError(ExceptionGroup):
    pass


class ImportAbortedError(ExceptionGroup):
    pass


class DisposeError(ExceptionGroup):
    pass
