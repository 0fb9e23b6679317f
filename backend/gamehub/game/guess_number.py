"""Guess-number rules: each player hides a number in 1..100 and the players
take turns guessing the other's number, getting higher/lower hints."""
from __future__ import annotations

from .models import Guess, GuessNumberData, GuessNumberPlayer, Hint, Player

MIN_NUMBER = 1
MAX_NUMBER = 100


def initial_state(players: list[Player]) -> GuessNumberData:
    return GuessNumberData(
        current_turn=players[0].id,
        phase="setup",
        players={p.id: GuessNumberPlayer(name=p.name) for p in players},
    )


def in_range(n: object) -> bool:
    return isinstance(n, int) and not isinstance(n, bool) and MIN_NUMBER <= n <= MAX_NUMBER


def hint_for(guess: int, secret: int) -> Hint:
    if guess == secret:
        return "correct"
    if guess < secret:
        return "higher"
    return "lower"


def opponent_id(data: GuessNumberData, player_id: str) -> str | None:
    for pid in data.players:
        if pid != player_id:
            return pid
    return None


def apply_secret(data: GuessNumberData, player_id: str, secret: int) -> bool:
    me = data.players.get(player_id)
    if me is None or data.phase != "setup" or me.has_set_number:
        return False
    if not in_range(secret):
        return False
    me.secret_number = secret
    me.has_set_number = True
    other = opponent_id(data, player_id)
    if other is not None and data.players[other].has_set_number:
        data.phase = "playing"
    return True


def apply_clear_secret(data: GuessNumberData, player_id: str) -> bool:
    """Take back a chosen number while the opponent is still choosing."""
    me = data.players.get(player_id)
    if me is None or data.phase != "setup" or not me.has_set_number:
        return False
    me.secret_number = None
    me.has_set_number = False
    return True


def apply_guess(data: GuessNumberData, player_id: str, guess: int) -> Hint | None:
    """Record a guess and pass the turn. Returns the hint, or None if rejected."""
    if data.phase != "playing" or data.winner is not None:
        return None
    if data.current_turn != player_id or not in_range(guess):
        return None
    other = opponent_id(data, player_id)
    if other is None:
        return None
    secret = data.players[other].secret_number
    if secret is None:
        return None
    hint = hint_for(guess, secret)
    data.players[player_id].guesses.append(Guess(number=guess, hint=hint))
    data.current_turn = other
    if hint == "correct":
        data.winner = player_id
    return hint
