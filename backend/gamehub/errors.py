from __future__ import annotations


class GameHubError(Exception):
    """Base error. ``code`` is the string sent to clients in ``room:error``."""

    code = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)


class RoomNotFound(GameHubError):
    code = "room_not_found"


class RoomFull(GameHubError):
    code = "room_full"


class StoreUnavailable(GameHubError):
    code = "store_unavailable"


class VersionConflict(GameHubError):
    """A conditional write lost against a newer document version."""

    code = "version_conflict"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"expected version {expected}, found {actual}")
        self.expected = expected
        self.actual = actual


class InvalidPlayer(GameHubError):
    code = "invalid_payload"
