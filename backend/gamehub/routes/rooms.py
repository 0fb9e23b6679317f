from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..game.lifecycle import RoomLifecycle, normalize_code
from ..game.models import Room, now_ms
from ..game.views import room_view

bp = Blueprint("rooms", __name__)


def _core():
    ext = current_app.extensions["gamehub"]
    return ext["store"], ext["settings"]


@bp.get("/rooms/<code>")
def get_room(code: str):
    store, settings = _core()
    normalized = normalize_code(code, settings.room_code_length)
    doc = store.get(normalized) if normalized else None
    if not doc:
        return jsonify({"error": "room_not_found"}), 404
    return jsonify(room_view(Room.from_doc(doc), None, now_ms(), settings.presence_timeout_sec))


@bp.post("/rooms/sweep")
def sweep_rooms():
    store, settings = _core()
    removed = RoomLifecycle(store, settings).reclaim_stale_rooms()
    return jsonify({"removed": removed})
