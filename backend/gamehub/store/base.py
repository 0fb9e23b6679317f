from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable


ChangeCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]


class OnDisconnect:
    """Cleanup armed for one connection, executed by the store when it drops."""

    def __init__(self, store: RoomStore, connection_id: str, code: str, path: str) -> None:
        self._store = store
        self.connection_id = connection_id
        self.code = code
        self.path = path
        self.armed = False

    def remove(self) -> OnDisconnect:
        self.armed = True
        self._store._arm(self)
        return self

    def cancel(self) -> None:
        self.armed = False
        self._store._disarm(self)


class RoomStore(ABC):
    """Document store keyed by room code (``rooms/<code>``).

    ``update`` keys are ``/``-separated paths into the document and a ``None``
    value deletes the path. Passing ``expected_version`` makes the write
    conditional on the document's ``version`` field and bumps it; a mismatch
    raises ``VersionConflict``.
    """

    @abstractmethod
    def get(self, code: str) -> dict | None: ...

    @abstractmethod
    def list_codes(self) -> list[str]: ...

    @abstractmethod
    def set(self, code: str, doc: dict, if_absent: bool = False) -> None: ...

    @abstractmethod
    def update(self, code: str, changes: dict[str, Any], expected_version: int | None = None) -> None: ...

    @abstractmethod
    def remove(self, code: str, expected_version: int | None = None) -> bool: ...

    @abstractmethod
    def subscribe(
        self,
        code: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Callable[[], None]: ...

    def on_disconnect(self, connection_id: str, code: str, path: str) -> OnDisconnect:
        return OnDisconnect(self, connection_id, code, path)

    @abstractmethod
    def disconnect(self, connection_id: str) -> None: ...

    @abstractmethod
    def _arm(self, hook: OnDisconnect) -> None: ...

    @abstractmethod
    def _disarm(self, hook: OnDisconnect) -> None: ...
