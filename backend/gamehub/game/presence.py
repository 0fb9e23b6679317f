from __future__ import annotations

import logging
from typing import Callable

from ..errors import RoomNotFound
from ..store.base import OnDisconnect, RoomStore
from .models import now_ms

logger = logging.getLogger(__name__)


class HeartbeatPresence:
    """Writes ``pings/<player>`` on attach and then every ``interval_sec``.

    Works with any store; a client that vanishes simply stops pinging and the
    reclamation sweep notices.
    """

    def __init__(
        self,
        store: RoomStore,
        player_id: str,
        connection_id: str,
        interval_sec: float = 30,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.player_id = player_id
        self.connection_id = connection_id
        self.interval_ms = int(interval_sec * 1000)
        self.clock = clock
        self.code: str | None = None
        self.next_beat_at: int | None = None

    @property
    def path(self) -> str:
        return f"pings/{self.player_id}"

    def attach(self, code: str) -> None:
        if self.code is not None:
            self.detach()
        self.code = code
        self.beat()

    def beat(self) -> None:
        if self.code is None:
            return
        now = self.clock()
        try:
            self.store.update(self.code, {self.path: now})
        except RoomNotFound:
            logger.debug("Room %s gone, stopping heartbeat for %s", self.code, self.player_id)
            self.detach()
            return
        self.next_beat_at = now + self.interval_ms

    def tick(self) -> None:
        if self.code is not None and self.next_beat_at is not None and self.clock() >= self.next_beat_at:
            self.beat()

    def detach(self) -> None:
        self.code = None
        self.next_beat_at = None


class DisconnectHookPresence(HeartbeatPresence):
    """Heartbeat plus a store-armed removal of the ping when the connection
    drops, so a crashed client clears its own liveness signal."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._hook: OnDisconnect | None = None

    def attach(self, code: str) -> None:
        super().attach(code)
        if self.code is not None:
            self._hook = self.store.on_disconnect(self.connection_id, code, self.path).remove()

    def detach(self) -> None:
        if self._hook is not None:
            self._hook.cancel()
            self._hook = None
        super().detach()


PRESENCE_MODES = {
    "heartbeat": HeartbeatPresence,
    "hook": DisconnectHookPresence,
}


def make_presence(mode: str, *args, **kwargs) -> HeartbeatPresence:
    try:
        cls = PRESENCE_MODES[mode]
    except KeyError:
        raise ValueError(f"unknown presence mode: {mode!r}") from None
    return cls(*args, **kwargs)
