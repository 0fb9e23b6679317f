from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..errors import StoreUnavailable

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    store = current_app.extensions["gamehub"]["store"]
    try:
        rooms = len(store.list_codes())
    except StoreUnavailable:
        return jsonify({"ok": False, "error": "store_unavailable"}), 503
    return jsonify({"ok": True, "rooms": rooms})
