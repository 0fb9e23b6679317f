from __future__ import annotations

import logging
import random
import re
import string
from typing import Callable

from ..config import RoomSettings
from ..errors import RoomFull, RoomNotFound, StoreUnavailable, VersionConflict
from ..store.base import RoomStore
from .models import GAME_TYPES, MAX_PLAYERS, Player, Room, now_ms
from .transitions import DELETE, apply_transition

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(length: int = 6, rng: random.Random | None = None) -> str:
    r = rng or random
    return "".join(r.choices(CODE_ALPHABET, k=length))


def normalize_code(raw: str | None, length: int = 6) -> str | None:
    code = (raw or "").strip().upper()
    if not re.fullmatch(rf"[A-Z0-9]{{{length}}}", code):
        return None
    return code


class RoomLifecycle:
    """Create, join, leave and reclaim rooms in a shared store."""

    def __init__(
        self,
        store: RoomStore,
        settings: RoomSettings | None = None,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or RoomSettings()
        self.clock = clock
        self.rng = rng

    def _transition(self, code: str, fn) -> Room | None:
        return apply_transition(
            self.store,
            code,
            fn,
            versioned=self.settings.optimistic_concurrency,
            retries=self.settings.transition_retries,
        )

    def _require_code(self, raw: str) -> str:
        code = normalize_code(raw, self.settings.room_code_length)
        if code is None:
            raise RoomNotFound(raw or "")
        return code

    def create_room(self, game_type: str, host: Player) -> str:
        if game_type not in GAME_TYPES:
            raise ValueError(f"unknown game type: {game_type!r}")

        self.reclaim_stale_rooms()

        now = self.clock()
        attempts = max(1, self.settings.transition_retries)
        for _ in range(attempts):
            code = generate_room_code(self.settings.room_code_length, self.rng)
            room = Room(
                code=code,
                game_type=game_type,  # type: ignore[arg-type]
                players=[Player(id=host.id, name=host.name, is_host=True)],
                status="waiting",
                created_at=now,
                last_activity=now,
                pings={host.id: now},
            )
            try:
                # Without versioning a colliding code silently overwrites.
                self.store.set(code, room.to_doc(), if_absent=self.settings.optimistic_concurrency)
            except VersionConflict:
                logger.debug("Room code %s already taken, drawing another", code)
                continue
            logger.info("Room %s created (%s) by %s", code, game_type, host.id)
            return code
        raise StoreUnavailable("could not allocate a free room code")

    def join_room(self, raw_code: str, player: Player) -> Room:
        code = self._require_code(raw_code)
        self.reclaim_stale_rooms()

        def join(room: Room):
            now = self.clock()
            if room.has_player(player.id):
                return {f"pings/{player.id}": now}
            if len(room.players) >= MAX_PLAYERS:
                raise RoomFull(code)
            players = room.players + [Player(id=player.id, name=player.name, is_host=not room.players)]
            return {
                "players": [p.to_doc() for p in players],
                "lastActivity": max(now, room.last_activity),
                f"pings/{player.id}": now,
            }

        room = self._transition(code, join)
        if room is None:
            raise RoomNotFound(code)
        logger.info("Player %s joined room %s (%d/%d)", player.id, code, len(room.players), MAX_PLAYERS)
        return room

    def leave_room(self, raw_code: str, player_id: str) -> None:
        code = self._require_code(raw_code)

        def leave(room: Room):
            if not room.has_player(player_id):
                return None
            remaining = [p for p in room.players if p.id != player_id]
            if not remaining:
                return DELETE
            return {
                "players": [p.to_doc() for p in remaining],
                f"pings/{player_id}": None,
            }

        try:
            self._transition(code, leave)
        except RoomNotFound:
            return
        logger.info("Player %s left room %s", player_id, code)

    def abandon_game(self, raw_code: str, player_id: str) -> None:
        """Forfeit a running game to the opponent and leave in one write."""
        code = self._require_code(raw_code)

        def abandon(room: Room):
            if not room.has_player(player_id):
                return None
            opponent = room.opponent_of(player_id)
            remaining = [p for p in room.players if p.id != player_id]
            if room.status != "playing" or opponent is None or room.game_data is None:
                if not remaining:
                    return DELETE
                return {"players": [p.to_doc() for p in remaining], f"pings/{player_id}": None}
            return {
                "gameData/winner": opponent.id,
                "status": "finished",
                "lastActivity": max(self.clock(), room.last_activity),
                "players": [p.to_doc() for p in remaining],
                f"pings/{player_id}": None,
            }

        try:
            self._transition(code, abandon)
        except RoomNotFound:
            return
        logger.info("Player %s abandoned room %s", player_id, code)

    def stale_reason(self, room: Room, now: int) -> str | None:
        s = self.settings
        if not room.players:
            return "empty"
        if now - room.last_activity > s.idle_timeout_sec * 1000:
            return "idle"
        if now - room.created_at > s.presence_grace_sec * 1000:
            fresh = any(now - ts <= s.presence_timeout_sec * 1000 for ts in room.pings.values())
            if not fresh:
                return "no_presence"
        return None

    def reclaim_stale_rooms(self) -> list[str]:
        """Delete idle, abandoned and empty rooms. Safe to run concurrently."""
        now = self.clock()
        removed: list[str] = []
        for code in self.store.list_codes():
            doc = self.store.get(code)
            if doc is None:
                continue
            room = Room.from_doc(doc)
            reason = self.stale_reason(room, now)
            if reason is None:
                continue
            expected = room.version if self.settings.optimistic_concurrency else None
            try:
                deleted = self.store.remove(code, expected_version=expected)
            except VersionConflict:
                # Someone joined or moved since the read; judge it next sweep.
                continue
            if deleted:
                removed.append(code)
                logger.info("Reclaimed room %s (%s)", code, reason)
        return removed
