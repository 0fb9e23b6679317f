from __future__ import annotations

import logging
from typing import Any, Callable

from flask import request
from flask_socketio import SocketIO, emit

from ..config import RoomSettings
from ..errors import GameHubError, InvalidPlayer
from ..game.models import GAME_TYPES
from ..game.session import RoomSession
from ..identity import PLAYER_ID_KEY, SessionContext, validate_player_id
from ..store.base import RoomStore

logger = logging.getLogger(__name__)


def _as_int(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def register_socketio_handlers(
    socketio: SocketIO,
    store: RoomStore,
    settings: RoomSettings,
    tick_sec: float = 0.25,
) -> None:
    sessions: dict[str, RoomSession] = {}
    session_tasks: dict[str, bool] = {}

    def _emit_state(sid: str, session: RoomSession) -> None:
        view = session.view()
        if view is not None:
            socketio.emit("room:state", view, to=sid)

    def _emit_error(sid: str, exc: GameHubError) -> None:
        socketio.emit("room:error", {"error": exc.code}, to=sid)

    def _fail(exc: GameHubError) -> dict:
        emit("room:error", {"error": exc.code})
        return {"ok": False, "error": exc.code}

    def _ensure_session_task(sid: str) -> None:
        if session_tasks.get(sid):
            return
        session_tasks[sid] = True

        def _runner() -> None:
            while True:
                session = sessions.get(sid)
                if session is None:
                    break
                try:
                    session.tick()
                except Exception:
                    logger.exception("Session tick failed for %s", sid)
                socketio.sleep(tick_sec)
            session_tasks.pop(sid, None)

        socketio.start_background_task(_runner)

    def _run(action: Callable[[RoomSession], dict]) -> dict:
        session = sessions.get(request.sid)
        if session is None:
            return _fail(InvalidPlayer("session:init first"))
        try:
            return action(session)
        except GameHubError as exc:
            return _fail(exc)

    @socketio.on("session:init")
    def session_init(data):
        payload = data or {}
        player_id = str(payload.get("playerId", "")).strip()
        name = str(payload.get("name", "")).strip()
        room_code = str(payload.get("roomCode", "")).strip()

        if player_id and not validate_player_id(player_id):
            return _fail(InvalidPlayer("invalid player id"))

        context = SessionContext({PLAYER_ID_KEY: player_id} if player_id else {}).load_or_create()
        try:
            context.save_name(name)
        except InvalidPlayer as exc:
            return _fail(exc)

        sid = request.sid
        previous = sessions.pop(sid, None)
        if previous is not None:
            previous.close()

        session = RoomSession(
            store,
            context,
            connection_id=sid,
            settings=settings,
            on_change=lambda room: _emit_state(sid, session),
            on_error=lambda exc: _emit_error(sid, exc),
        )
        sessions[sid] = session
        _ensure_session_task(sid)
        logger.info("Session %s ready for player %s", sid, context.player_id)

        rejoined = None
        if room_code:
            # Reload: go back to the remembered room if it is still there.
            try:
                rejoined = session.join_room(room_code).code
            except GameHubError as exc:
                emit("room:error", {"error": exc.code})

        return {"ok": True, "playerId": context.player_id, "name": context.player_name, "roomCode": rejoined}

    @socketio.on("room:create")
    def room_create(data):
        game_type = str((data or {}).get("gameType", "")).strip()
        if game_type not in GAME_TYPES:
            emit("room:error", {"error": "invalid_payload"})
            return {"ok": False, "error": "invalid_payload"}
        return _run(lambda s: {"ok": True, "roomCode": s.create_room(game_type)})

    @socketio.on("room:join")
    def room_join(data):
        room_code = str((data or {}).get("roomCode", "")).strip()
        if not room_code:
            emit("room:error", {"error": "invalid_payload"})
            return {"ok": False, "error": "invalid_payload"}
        return _run(lambda s: {"ok": True, "roomCode": s.join_room(room_code).code})

    @socketio.on("room:leave")
    def room_leave(data=None):
        def leave(s: RoomSession) -> dict:
            s.leave_room()
            return {"ok": True}

        return _run(leave)

    @socketio.on("game:abandon")
    def game_abandon(data=None):
        def abandon(s: RoomSession) -> dict:
            s.abandon_game()
            return {"ok": True}

        return _run(abandon)

    @socketio.on("game:roll")
    def game_roll(data=None):
        def roll(s: RoomSession) -> dict:
            total = s.roll()
            return {"ok": total is not None, "roll": total}

        return _run(roll)

    @socketio.on("game:move")
    def game_move(data):
        raw = (data or {}).get("numbers")
        if not isinstance(raw, list):
            return {"ok": False, "error": "invalid_move"}
        numbers = [_as_int(n) for n in raw]
        if any(n is None for n in numbers):
            return {"ok": False, "error": "invalid_move"}
        return _run(lambda s: {"ok": s.submit_move(numbers)})

    @socketio.on("game:end_turn")
    def game_end_turn(data=None):
        return _run(lambda s: {"ok": s.end_turn()})

    @socketio.on("game:secret")
    def game_secret(data):
        number = _as_int((data or {}).get("number"))
        if number is None:
            return {"ok": False, "error": "invalid_move"}
        return _run(lambda s: {"ok": s.set_secret(number)})

    @socketio.on("game:secret_clear")
    def game_secret_clear(data=None):
        return _run(lambda s: {"ok": s.clear_secret()})

    @socketio.on("game:guess")
    def game_guess(data):
        number = _as_int((data or {}).get("number"))
        if number is None:
            return {"ok": False, "error": "invalid_move"}

        def guess(s: RoomSession) -> dict:
            hint = s.guess(number)
            return {"ok": hint is not None, "hint": hint}

        return _run(guess)

    @socketio.on("game:rematch")
    def game_rematch(data=None):
        return _run(lambda s: {"ok": s.vote_rematch()})

    @socketio.on("presence:ping")
    def presence_ping(data=None):
        def ping(s: RoomSession) -> dict:
            s.presence.beat()
            return {"ok": s.is_open}

        return _run(ping)

    @socketio.on("disconnect")
    def on_disconnect(*args):
        sid = request.sid
        # Store-side cleanup first: it must not depend on the session closing cleanly.
        store.disconnect(sid)
        session = sessions.pop(sid, None)
        if session is not None:
            session.close()
            logger.info("Session %s disconnected", sid)
