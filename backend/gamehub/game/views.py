from __future__ import annotations

from .models import TIE, GuessNumberData, Room


def opponent_online(room: Room, viewer_id: str, now: int, presence_timeout_sec: float) -> bool:
    opponent = room.opponent_of(viewer_id)
    if opponent is None:
        return False
    ts = room.pings.get(opponent.id)
    return ts is not None and now - ts <= presence_timeout_sec * 1000


def room_view(room: Room, viewer_id: str | None, now: int, presence_timeout_sec: float = 120) -> dict:
    """Room snapshot as one viewer may see it.

    The opponent's secret number stays hidden until the game is over; the
    public view (``viewer_id=None``) hides every secret.
    """
    doc = room.to_doc()
    data = room.game_data

    if isinstance(data, GuessNumberData) and room.status != "finished":
        for pid, p in doc["gameData"]["players"].items():
            if pid != viewer_id:
                p["secretNumber"] = None

    if viewer_id is None:
        return doc

    opponent = room.opponent_of(viewer_id)
    winner = data.winner if data is not None else None
    votes = data.play_again_votes if data is not None else set()
    doc.update(
        {
            "viewerId": viewer_id,
            "isHost": room.is_host(viewer_id),
            "isMyTurn": room.status == "playing" and data is not None and data.current_turn == viewer_id,
            "opponentId": opponent.id if opponent else None,
            "opponentOnline": opponent_online(room, viewer_id, now, presence_timeout_sec),
            "canRematch": room.status == "finished" and len(room.players) == 2 and viewer_id not in votes,
            "hasVotedRematch": viewer_id in votes,
            "isWinner": winner == viewer_id,
            "isTie": winner == TIE,
        }
    )
    return doc
