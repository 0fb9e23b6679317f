from __future__ import annotations

import logging
import random
from typing import Callable

from ..config import RoomSettings
from ..store.base import RoomStore
from . import guess_number, shut_the_box
from .models import GuessNumberData, Hint, Room, ShutTheBoxData, now_ms
from .transitions import apply_transition

logger = logging.getLogger(__name__)


def initial_game_data(room: Room):
    if room.game_type == "shut-the-box":
        return shut_the_box.initial_state(room.players)
    if room.game_type == "guess-number":
        return guess_number.initial_state(room.players)
    raise ValueError(f"unknown game type: {room.game_type!r}")


class GameSynchronizer:
    """Turns a player's intent into the next shared ``gameData``.

    Intents that are out of turn or illegal are dropped before any write and
    reported as ``False``/``None``.
    """

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

    def _touch(self, room: Room) -> int:
        return max(self.clock(), room.last_activity)

    def start_game(self, code: str, player_id: str) -> bool:
        """Seed the initial game state. Only the host does this, once both
        seats are taken."""

        def start(room: Room):
            if room.status != "waiting" or len(room.players) != 2:
                return None
            if not room.is_host(player_id):
                return None
            data = initial_game_data(room)
            return {"status": "playing", "gameData": data.to_doc(), "lastActivity": self._touch(room)}

        room = self._transition(code, start)
        if room is None:
            return False
        logger.info("Game %s started in room %s", room.game_type, code)
        return True

    def _play(self, code: str, player_id: str, expected: type, mutate) -> object:
        outcome: dict[str, object] = {}

        def play(room: Room):
            outcome.clear()
            data = room.game_data
            if room.status != "playing" or not isinstance(data, expected):
                return None
            if not room.has_player(player_id):
                return None
            result = mutate(data)
            if result is None or result is False:
                return None
            outcome["result"] = result
            changes = {"gameData": data.to_doc(), "lastActivity": self._touch(room)}
            if data.winner is not None:
                changes["status"] = "finished"
                outcome["winner"] = data.winner
            return changes

        room = self._transition(code, play)
        if room is None:
            return None
        if "winner" in outcome:
            logger.info("Room %s finished, winner %s", code, outcome["winner"])
        return outcome.get("result")

    # -- shut-the-box --------------------------------------------------------

    def roll(self, code: str, player_id: str) -> int | None:
        d1, d2 = shut_the_box.roll_dice(self.rng)
        total = d1 + d2

        def mutate(data: ShutTheBoxData):
            return total if shut_the_box.apply_roll(data, player_id, total) else None

        return self._play(code, player_id, ShutTheBoxData, mutate)  # type: ignore[return-value]

    def submit_move(self, code: str, player_id: str, selection: list[int]) -> bool:
        def mutate(data: ShutTheBoxData):
            return shut_the_box.apply_move(data, player_id, list(selection))

        return bool(self._play(code, player_id, ShutTheBoxData, mutate))

    def end_turn(self, code: str, player_id: str) -> bool:
        def mutate(data: ShutTheBoxData):
            return shut_the_box.apply_end_turn(data, player_id)

        return bool(self._play(code, player_id, ShutTheBoxData, mutate))

    # -- guess-number --------------------------------------------------------

    def set_secret(self, code: str, player_id: str, secret: int) -> bool:
        def mutate(data: GuessNumberData):
            return guess_number.apply_secret(data, player_id, secret)

        return bool(self._play(code, player_id, GuessNumberData, mutate))

    def clear_secret(self, code: str, player_id: str) -> bool:
        def mutate(data: GuessNumberData):
            return guess_number.apply_clear_secret(data, player_id)

        return bool(self._play(code, player_id, GuessNumberData, mutate))

    def guess(self, code: str, player_id: str, number: int) -> Hint | None:
        def mutate(data: GuessNumberData):
            return guess_number.apply_guess(data, player_id, number)

        return self._play(code, player_id, GuessNumberData, mutate)  # type: ignore[return-value]

    # -- rematch -------------------------------------------------------------

    def vote_rematch(self, code: str, player_id: str) -> bool:
        """Add a rematch vote; the second distinct vote resets the room."""
        reset = False

        def vote(room: Room):
            nonlocal reset
            reset = False
            data = room.game_data
            if room.status != "finished" or data is None:
                return None
            if len(room.players) < 2 or not room.has_player(player_id):
                return None
            if player_id in data.play_again_votes:
                return None
            if any(v != player_id and room.has_player(v) for v in data.play_again_votes):
                reset = True
                return {"status": "waiting", "gameData": None, "lastActivity": self._touch(room)}
            return {
                "gameData/playAgainVotes": sorted(data.play_again_votes | {player_id}),
                "lastActivity": self._touch(room),
            }

        room = self._transition(code, vote)
        if room is None:
            return False
        if reset:
            logger.info("Room %s reset for a rematch", code)
        return True
