from __future__ import annotations

import re
import secrets
import string
from collections.abc import MutableMapping

from .errors import InvalidPlayer
from .game.models import GAME_TYPES, Player

PLAYER_ID_KEY = "gamehub_player_id"
PLAYER_NAME_KEY = "gamehub_player_name"
ROOM_CODE_KEY = "currentRoomCode"
GAME_KEY = "currentGame"

_ID_ALPHABET = string.ascii_lowercase + string.digits

NAME_MIN = 2
NAME_MAX = 20


def generate_player_id(length: int = 13) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not NAME_MIN <= len(n) <= NAME_MAX:
        return False
    if "<" in n or ">" in n:
        return False
    return all(ord(ch) >= 32 for ch in n)


class SessionContext:
    """Per-browser identity and remembered session, backed by a key-value
    mapping (the browser's local storage, or a plain dict)."""

    def __init__(self, storage: MutableMapping[str, str] | None = None) -> None:
        self.storage: MutableMapping[str, str] = storage if storage is not None else {}
        self.player_id = ""
        self.player_name = ""

    def load_or_create(self) -> SessionContext:
        pid = (self.storage.get(PLAYER_ID_KEY) or "").strip()
        if not validate_player_id(pid):
            pid = generate_player_id()
            self.storage[PLAYER_ID_KEY] = pid
        self.player_id = pid
        self.player_name = (self.storage.get(PLAYER_NAME_KEY) or "").strip()
        return self

    @property
    def has_name(self) -> bool:
        return bool(self.player_name)

    def save_name(self, name: str) -> None:
        if not validate_name(name):
            raise InvalidPlayer(f"invalid player name: {name!r}")
        self.player_name = name.strip()
        self.storage[PLAYER_NAME_KEY] = self.player_name

    def clear_name(self) -> None:
        self.storage.pop(PLAYER_NAME_KEY, None)
        self.player_name = ""

    def player(self) -> Player:
        if not self.player_id or not self.player_name:
            raise InvalidPlayer("session has no player id or name")
        return Player(id=self.player_id, name=self.player_name)

    # Remembered room, so a reload can rejoin.

    @property
    def room_code(self) -> str | None:
        return self.storage.get(ROOM_CODE_KEY) or None

    @property
    def game_type(self) -> str | None:
        game = self.storage.get(GAME_KEY)
        return game if game in GAME_TYPES else None

    def remember_room(self, code: str, game_type: str | None = None) -> None:
        self.storage[ROOM_CODE_KEY] = code
        if game_type:
            self.storage[GAME_KEY] = game_type

    def forget_room(self) -> None:
        self.storage.pop(ROOM_CODE_KEY, None)
        self.storage.pop(GAME_KEY, None)


def validate_player_id(player_id: str) -> bool:
    # Ids end up in store paths (pings/<id>), so no separators.
    return bool(re.fullmatch(r"[A-Za-z0-9_-]{4,64}", player_id or ""))
