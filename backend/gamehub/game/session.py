from __future__ import annotations

import logging
import random
from typing import Callable

from ..config import RoomSettings
from ..errors import GameHubError, RoomNotFound
from ..identity import SessionContext
from ..store.base import RoomStore
from .lifecycle import RoomLifecycle
from .models import Hint, Room, now_ms
from .presence import make_presence
from .sync import GameSynchronizer
from .views import room_view

logger = logging.getLogger(__name__)


class RoomSession:
    """One client's view of one room at a time.

    Subscribes to the room document, keeps the heartbeat and the reclamation
    sweep running while subscribed, seeds the game when this player is the
    host and the room fills up, and reports every background failure on the
    single ``on_error`` channel. Call ``tick()`` periodically to drive the
    timers.
    """

    def __init__(
        self,
        store: RoomStore,
        context: SessionContext,
        connection_id: str,
        settings: RoomSettings | None = None,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
        on_change: Callable[[Room], None] | None = None,
        on_error: Callable[[GameHubError], None] | None = None,
    ) -> None:
        self.store = store
        self.context = context
        self.connection_id = connection_id
        self.settings = settings or RoomSettings()
        self.clock = clock
        self.on_change = on_change
        self.on_error = on_error

        self.lifecycle = RoomLifecycle(store, self.settings, clock, rng)
        self.sync = GameSynchronizer(store, self.settings, clock, rng)
        self.presence = make_presence(
            self.settings.presence_mode,
            store,
            context.player_id,
            connection_id,
            interval_sec=self.settings.heartbeat_interval_sec,
            clock=clock,
        )

        self.code: str | None = None
        self.room: Room | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._next_sweep_at: int | None = None

    @property
    def player_id(self) -> str:
        return self.context.player_id

    @property
    def is_open(self) -> bool:
        return self.code is not None

    # -- subscription --------------------------------------------------------

    def open(self, code: str) -> None:
        self.close()
        self.code = code
        unsubscribe = self.store.subscribe(code, self._on_snapshot, self._on_store_error)
        if self.code != code:
            # The first snapshot already told us the room is gone.
            unsubscribe()
            return
        self._unsubscribe = unsubscribe
        self.presence.attach(code)
        self._next_sweep_at = self.clock() + int(self.settings.sweep_interval_sec * 1000)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.presence.detach()
        self.code = None
        self.room = None
        self._next_sweep_at = None

    def tick(self) -> None:
        if not self.is_open:
            return
        try:
            self.presence.tick()
            now = self.clock()
            if self._next_sweep_at is not None and now >= self._next_sweep_at:
                self._next_sweep_at = now + int(self.settings.sweep_interval_sec * 1000)
                self.lifecycle.reclaim_stale_rooms()
        except GameHubError as exc:
            self._report(exc)

    def _on_snapshot(self, doc: dict | None) -> None:
        if self.code is None:
            return
        if doc is None:
            code = self.code
            self.close()
            self._report(RoomNotFound(code))
            return
        room = Room.from_doc(doc)
        self.room = room
        if self.on_change is not None:
            self.on_change(room)
        if room.status == "waiting" and len(room.players) == 2 and room.is_host(self.player_id):
            try:
                self.sync.start_game(room.code, self.player_id)
            except GameHubError as exc:
                self._report(exc)

    def _on_store_error(self, exc: Exception) -> None:
        if isinstance(exc, GameHubError):
            self._report(exc)
        else:
            logger.exception("Unexpected store error in room %s", self.code, exc_info=exc)

    def _report(self, exc: GameHubError) -> None:
        logger.warning("Session %s: %s (%s)", self.player_id, exc.code, exc)
        if isinstance(exc, RoomNotFound):
            self.context.forget_room()
        if self.on_error is not None:
            self.on_error(exc)

    def view(self) -> dict | None:
        if self.room is None:
            return None
        return room_view(self.room, self.player_id, self.clock(), self.settings.presence_timeout_sec)

    # -- lobby intents -------------------------------------------------------

    def create_room(self, game_type: str) -> str:
        code = self.lifecycle.create_room(game_type, self.context.player())
        self.context.remember_room(code, game_type)
        self.open(code)
        return code

    def join_room(self, raw_code: str) -> Room:
        try:
            room = self.lifecycle.join_room(raw_code, self.context.player())
        except RoomNotFound:
            self.context.forget_room()
            raise
        self.context.remember_room(room.code, room.game_type)
        self.open(room.code)
        return room

    def leave_room(self) -> None:
        code = self.code
        if code is None:
            return
        self.close()
        self.context.forget_room()
        self.lifecycle.leave_room(code, self.player_id)

    def abandon_game(self) -> None:
        code = self.code
        if code is None:
            return
        self.close()
        self.context.forget_room()
        self.lifecycle.abandon_game(code, self.player_id)

    # -- game intents --------------------------------------------------------

    def roll(self) -> int | None:
        return self.sync.roll(self.code, self.player_id) if self.code else None

    def submit_move(self, selection: list[int]) -> bool:
        return self.sync.submit_move(self.code, self.player_id, selection) if self.code else False

    def end_turn(self) -> bool:
        return self.sync.end_turn(self.code, self.player_id) if self.code else False

    def set_secret(self, secret: int) -> bool:
        return self.sync.set_secret(self.code, self.player_id, secret) if self.code else False

    def clear_secret(self) -> bool:
        return self.sync.clear_secret(self.code, self.player_id) if self.code else False

    def guess(self, number: int) -> Hint | None:
        return self.sync.guess(self.code, self.player_id, number) if self.code else None

    def vote_rematch(self) -> bool:
        return self.sync.vote_rematch(self.code, self.player_id) if self.code else False
