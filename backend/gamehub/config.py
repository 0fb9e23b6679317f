import os
from dataclasses import dataclass, fields


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    TESTING = False

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Socket.IO async mode ("" picks eventlet or threading by platform)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rooms
    ROOM_CODE_LENGTH = int(os.environ.get("ROOM_CODE_LENGTH", "6"))

    # Presence: "hook" arms an on-disconnect ping removal, "heartbeat" only pings
    PRESENCE_MODE = os.environ.get("PRESENCE_MODE", "hook")
    HEARTBEAT_INTERVAL_SEC = int(os.environ.get("HEARTBEAT_INTERVAL_SEC", "30"))

    # Reclamation sweep
    SWEEP_INTERVAL_SEC = int(os.environ.get("SWEEP_INTERVAL_SEC", "60"))
    IDLE_TIMEOUT_SEC = int(os.environ.get("IDLE_TIMEOUT_SEC", "900"))
    PRESENCE_TIMEOUT_SEC = int(os.environ.get("PRESENCE_TIMEOUT_SEC", "120"))
    PRESENCE_GRACE_SEC = int(os.environ.get("PRESENCE_GRACE_SEC", "120"))

    # Conditional (versioned) writes; "0" falls back to last-write-wins
    OPTIMISTIC_CONCURRENCY = os.environ.get("OPTIMISTIC_CONCURRENCY", "1") == "1"
    TRANSITION_RETRIES = int(os.environ.get("TRANSITION_RETRIES", "5"))

    # Granularity of the per-session timer loop
    SESSION_TICK_SEC = float(os.environ.get("SESSION_TICK_SEC", "0.25"))


@dataclass
class RoomSettings:
    """Timing and concurrency knobs shared by the room core, in seconds."""

    room_code_length: int = 6
    presence_mode: str = "hook"
    heartbeat_interval_sec: float = 30
    sweep_interval_sec: float = 60
    idle_timeout_sec: float = 900
    presence_timeout_sec: float = 120
    presence_grace_sec: float = 120
    optimistic_concurrency: bool = True
    transition_retries: int = 5

    @classmethod
    def from_mapping(cls, config) -> "RoomSettings":
        defaults = cls()
        values = {}
        for f in fields(cls):
            key = f.name.upper()
            values[f.name] = config.get(key, getattr(defaults, f.name))
        return cls(**values)
