from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal, Union


GameType = Literal["shut-the-box", "guess-number"]
RoomStatus = Literal["waiting", "playing", "finished"]
GuessPhase = Literal["setup", "playing"]
Hint = Literal["higher", "lower", "correct"]

GAME_TYPES: tuple[str, ...] = ("shut-the-box", "guess-number")
TIE = "tie"
MAX_PLAYERS = 2


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Player:
    id: str
    name: str
    # Snapshot taken at create/join time. Use Room.is_host() for decisions.
    is_host: bool = False

    @classmethod
    def from_doc(cls, doc: dict) -> Player:
        return cls(id=doc["id"], name=doc.get("name", ""), is_host=bool(doc.get("isHost", False)))

    def to_doc(self) -> dict:
        return {"id": self.id, "name": self.name, "isHost": self.is_host}


@dataclass
class ShutTheBoxPlayer:
    name: str
    numbers: list[int] = field(default_factory=lambda: list(range(1, 13)))
    is_finished: bool = False

    @property
    def score(self) -> int:
        return sum(self.numbers)

    @classmethod
    def from_doc(cls, doc: dict) -> ShutTheBoxPlayer:
        return cls(
            name=doc.get("name", ""),
            numbers=sorted(int(n) for n in doc.get("numbers") or []),
            is_finished=bool(doc.get("isFinished", False)),
        )

    def to_doc(self) -> dict:
        return {
            "name": self.name,
            "numbers": sorted(self.numbers),
            "score": self.score,
            "isFinished": self.is_finished,
        }


@dataclass
class ShutTheBoxData:
    current_turn: str
    players: dict[str, ShutTheBoxPlayer] = field(default_factory=dict)
    last_roll: int | None = None
    winner: str | None = None
    play_again_votes: set[str] = field(default_factory=set)

    @classmethod
    def from_doc(cls, doc: dict) -> ShutTheBoxData:
        return cls(
            current_turn=doc.get("currentTurn", ""),
            players={pid: ShutTheBoxPlayer.from_doc(p) for pid, p in (doc.get("players") or {}).items()},
            last_roll=doc.get("lastRoll"),
            winner=doc.get("winner"),
            play_again_votes=set(doc.get("playAgainVotes") or []),
        )

    def to_doc(self) -> dict:
        return {
            "currentTurn": self.current_turn,
            "players": {pid: p.to_doc() for pid, p in self.players.items()},
            "lastRoll": self.last_roll,
            "winner": self.winner,
            "playAgainVotes": sorted(self.play_again_votes),
        }


@dataclass
class Guess:
    number: int
    hint: Hint

    def to_doc(self) -> dict:
        return {"number": self.number, "hint": self.hint}


@dataclass
class GuessNumberPlayer:
    name: str
    secret_number: int | None = None
    has_set_number: bool = False
    guesses: list[Guess] = field(default_factory=list)

    @classmethod
    def from_doc(cls, doc: dict) -> GuessNumberPlayer:
        return cls(
            name=doc.get("name", ""),
            secret_number=doc.get("secretNumber"),
            has_set_number=bool(doc.get("hasSetNumber", False)),
            guesses=[Guess(number=int(g["number"]), hint=g["hint"]) for g in doc.get("guesses") or []],
        )

    def to_doc(self) -> dict:
        return {
            "name": self.name,
            "secretNumber": self.secret_number,
            "hasSetNumber": self.has_set_number,
            "guesses": [g.to_doc() for g in self.guesses],
        }


@dataclass
class GuessNumberData:
    current_turn: str
    phase: GuessPhase = "setup"
    players: dict[str, GuessNumberPlayer] = field(default_factory=dict)
    winner: str | None = None
    play_again_votes: set[str] = field(default_factory=set)

    @classmethod
    def from_doc(cls, doc: dict) -> GuessNumberData:
        return cls(
            current_turn=doc.get("currentTurn", ""),
            phase=doc.get("phase", "setup"),
            players={pid: GuessNumberPlayer.from_doc(p) for pid, p in (doc.get("players") or {}).items()},
            winner=doc.get("winner"),
            play_again_votes=set(doc.get("playAgainVotes") or []),
        )

    def to_doc(self) -> dict:
        return {
            "currentTurn": self.current_turn,
            "phase": self.phase,
            "players": {pid: p.to_doc() for pid, p in self.players.items()},
            "winner": self.winner,
            "playAgainVotes": sorted(self.play_again_votes),
        }


GameData = Union[ShutTheBoxData, GuessNumberData]


def game_data_from_doc(game_type: str, doc: dict | None) -> GameData | None:
    if not doc:
        return None
    if game_type == "shut-the-box":
        return ShutTheBoxData.from_doc(doc)
    if game_type == "guess-number":
        return GuessNumberData.from_doc(doc)
    raise ValueError(f"unknown game type: {game_type!r}")


@dataclass
class Room:
    code: str
    game_type: GameType
    players: list[Player] = field(default_factory=list)
    status: RoomStatus = "waiting"
    created_at: int = 0
    last_activity: int = 0
    pings: dict[str, int] = field(default_factory=dict)
    game_data: GameData | None = None
    version: int = 0

    @property
    def host_id(self) -> str | None:
        return self.players[0].id if self.players else None

    def is_host(self, player_id: str) -> bool:
        return self.host_id == player_id

    def has_player(self, player_id: str) -> bool:
        return any(p.id == player_id for p in self.players)

    def opponent_of(self, player_id: str) -> Player | None:
        for p in self.players:
            if p.id != player_id:
                return p
        return None

    @classmethod
    def from_doc(cls, doc: dict) -> Room:
        game_type = doc["gameType"]
        return cls(
            code=doc["code"],
            game_type=game_type,
            players=[Player.from_doc(p) for p in doc.get("players") or []],
            status=doc.get("status", "waiting"),
            created_at=int(doc.get("createdAt", 0)),
            last_activity=int(doc.get("lastActivity", doc.get("createdAt", 0))),
            pings={pid: int(ts) for pid, ts in (doc.get("pings") or {}).items()},
            game_data=game_data_from_doc(game_type, doc.get("gameData")),
            version=int(doc.get("version", 0)),
        )

    def to_doc(self) -> dict[str, Any]:
        return {
            "id": self.code,
            "code": self.code,
            "gameType": self.game_type,
            "players": [p.to_doc() for p in self.players],
            "status": self.status,
            "createdAt": self.created_at,
            "lastActivity": self.last_activity,
            "pings": dict(self.pings),
            "gameData": self.game_data.to_doc() if self.game_data is not None else None,
            "version": self.version,
        }
