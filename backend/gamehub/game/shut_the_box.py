"""Shut-the-box rules.

Each player starts with the numbers 1..12 "up". On their turn a player rolls
two dice and must knock down a set of distinct remaining numbers whose sum
equals the roll. A player who cannot do so is finished; emptying the board is
an instant win, and when both players are finished the lower remaining score
wins.
"""
from __future__ import annotations

import random
from typing import Iterable

from .models import TIE, Player, ShutTheBoxData, ShutTheBoxPlayer

NUMBERS = tuple(range(1, 13))
STARTING_SCORE = sum(NUMBERS)


def initial_state(players: list[Player]) -> ShutTheBoxData:
    return ShutTheBoxData(
        current_turn=players[0].id,
        players={p.id: ShutTheBoxPlayer(name=p.name, numbers=list(NUMBERS)) for p in players},
    )


def roll_dice(rng: random.Random | None = None) -> tuple[int, int]:
    r = rng or random
    return r.randint(1, 6), r.randint(1, 6)


def can_make_move(target: int, numbers: Iterable[int]) -> bool:
    """True iff some non-empty subset of ``numbers`` sums exactly to ``target``."""
    if target <= 0:
        return False
    reachable = {0}
    for n in numbers:
        reachable |= {s + n for s in reachable if s + n <= target}
        if target in reachable:
            return True
    return target in reachable


def is_valid_selection(selection: list[int], numbers: list[int], roll: int) -> bool:
    if not selection:
        return False
    if len(set(selection)) != len(selection):
        return False
    remaining = set(numbers)
    if any(n not in remaining for n in selection):
        return False
    return sum(selection) == roll


def opponent_id(data: ShutTheBoxData, player_id: str) -> str | None:
    for pid in data.players:
        if pid != player_id:
            return pid
    return None


def may_act(data: ShutTheBoxData, player_id: str) -> bool:
    """The turn holder may act; once the opponent is finished the remaining
    player keeps playing regardless of ``current_turn``."""
    me = data.players.get(player_id)
    if me is None or me.is_finished or data.winner is not None:
        return False
    if data.current_turn == player_id:
        return True
    other = opponent_id(data, player_id)
    return other is not None and data.players[other].is_finished


def _next_turn(data: ShutTheBoxData, player_id: str) -> str:
    other = opponent_id(data, player_id)
    if other is not None and not data.players[other].is_finished:
        return other
    return player_id


def decide_winner(data: ShutTheBoxData) -> str | None:
    """Winner once the board is decided, ``TIE`` on equal scores, else None."""
    for pid, p in data.players.items():
        if not p.numbers:
            return pid
    if not data.players or not all(p.is_finished for p in data.players.values()):
        return None
    ranked = sorted(data.players.items(), key=lambda item: item[1].score)
    if len(ranked) > 1 and ranked[0][1].score == ranked[1][1].score:
        return TIE
    return ranked[0][0]


def apply_roll(data: ShutTheBoxData, player_id: str, total: int) -> bool:
    if not may_act(data, player_id) or data.last_roll is not None:
        return False
    if total < 2 or total > 12:
        return False
    data.last_roll = total
    return True


def apply_move(data: ShutTheBoxData, player_id: str, selection: list[int]) -> bool:
    if not may_act(data, player_id) or data.last_roll is None:
        return False
    me = data.players[player_id]
    if not is_valid_selection(selection, me.numbers, data.last_roll):
        return False
    chosen = set(selection)
    me.numbers = [n for n in me.numbers if n not in chosen]
    data.last_roll = None
    data.winner = decide_winner(data)
    if data.winner is None:
        data.current_turn = _next_turn(data, player_id)
    return True


def apply_end_turn(data: ShutTheBoxData, player_id: str) -> bool:
    """Give up on the pending roll. Legal only when no subset matches it."""
    if not may_act(data, player_id) or data.last_roll is None:
        return False
    me = data.players[player_id]
    if can_make_move(data.last_roll, me.numbers):
        return False
    me.is_finished = True
    data.last_roll = None
    data.winner = decide_winner(data)
    if data.winner is None:
        data.current_turn = _next_turn(data, player_id)
    return True
