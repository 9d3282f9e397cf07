import threading

from recordflow.errors import ImportCancelledError


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self._cancellable = True

    @classmethod
    def none(cls) -> "CancellationToken":
        token = cls()
        token._cancellable = False
        return token

    @property
    def can_be_cancelled(self) -> bool:
        return self._cancellable

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._cancellable:
            raise RuntimeError("this token cannot be cancelled")
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ImportCancelledError("import cancelled")
