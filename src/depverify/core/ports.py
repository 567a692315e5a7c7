import threading
from typing import Protocol


class Workspace(Protocol):
    """
    Local side of a unit. Paths are the unit's ``local_path``; the
    implementation decides what they are relative to.
    """

    def exists(self, path: str) -> bool:
        pass

    def is_empty(self, path: str) -> bool:
        pass

    def remove(self, path: str) -> None:
        """Raise FilesystemError if the path cannot be removed."""
        pass


class Transport(Protocol):
    """
    Acquisition side. Every call must return or raise within ``timeout``
    seconds; a timeout is reported as TransportUnreachable.
    """

    def resolve_ref(self, path: str, ref: str, timeout: float) -> bool:
        pass

    def acquire(
        self,
        source: str,
        path: str,
        ref: str | None,
        shallow: bool,
        timeout: float,
    ) -> None:
        pass


class CancelToken:
    """Cooperative cancellation flag checked between units."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
