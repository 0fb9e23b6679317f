from __future__ import annotations

import copy
import logging
from collections import deque
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable

from ..errors import RoomNotFound, StoreUnavailable, VersionConflict
from .base import ChangeCallback, ErrorCallback, OnDisconnect, RoomStore

logger = logging.getLogger(__name__)


@dataclass
class _Subscription:
    code: str
    on_change: ChangeCallback
    on_error: ErrorCallback | None
    active: bool = True


def _apply_path(doc: dict, path: str, value: Any) -> None:
    parts = [p for p in path.split("/") if p]
    if not parts:
        raise ValueError("empty update path")
    node = doc
    for key in parts[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            if value is None:
                return
            child = {}
            node[key] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = copy.deepcopy(value)


class MemoryRoomStore(RoomStore):
    """Process-local store. Every write is applied under one lock and every
    subscriber sees whole-document snapshots in write order."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._rooms: dict[str, dict] = {}
        self._subscribers: dict[str, list[_Subscription]] = {}
        self._hooks: dict[str, dict[tuple[str, str], OnDisconnect]] = {}
        self._pending: deque[tuple[_Subscription, dict | None]] = deque()
        self._dispatching = False
        self._available = True

    # -- reads ---------------------------------------------------------------

    def get(self, code: str) -> dict | None:
        with self._lock:
            self._check()
            doc = self._rooms.get(code)
            return copy.deepcopy(doc) if doc is not None else None

    def list_codes(self) -> list[str]:
        with self._lock:
            self._check()
            return list(self._rooms.keys())

    # -- writes --------------------------------------------------------------

    def set(self, code: str, doc: dict, if_absent: bool = False) -> None:
        with self._lock:
            self._check()
            current = self._rooms.get(code)
            if if_absent and current is not None:
                raise VersionConflict(expected=0, actual=int(current.get("version", 0)))
            self._rooms[code] = copy.deepcopy(doc)
            self._enqueue(code)
        self._drain()

    def update(self, code: str, changes: dict[str, Any], expected_version: int | None = None) -> None:
        with self._lock:
            self._check()
            doc = self._rooms.get(code)
            if doc is None:
                # Partial writes never resurrect a deleted room.
                raise RoomNotFound(code)
            if expected_version is not None:
                actual = int(doc.get("version", 0))
                if actual != expected_version:
                    raise VersionConflict(expected=expected_version, actual=actual)
            for path, value in changes.items():
                _apply_path(doc, path, value)
            if expected_version is not None:
                doc["version"] = expected_version + 1
            self._enqueue(code)
        self._drain()

    def remove(self, code: str, expected_version: int | None = None) -> bool:
        with self._lock:
            self._check()
            doc = self._rooms.get(code)
            if doc is None:
                return False
            if expected_version is not None:
                actual = int(doc.get("version", 0))
                if actual != expected_version:
                    raise VersionConflict(expected=expected_version, actual=actual)
            del self._rooms[code]
            self._enqueue(code)
        self._drain()
        return True

    # -- subscriptions -------------------------------------------------------

    def subscribe(
        self,
        code: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Callable[[], None]:
        sub = _Subscription(code=code, on_change=on_change, on_error=on_error)
        with self._lock:
            self._check()
            self._subscribers.setdefault(code, []).append(sub)
            self._pending.append((sub, copy.deepcopy(self._rooms.get(code))))
        self._drain()

        def unsubscribe() -> None:
            with self._lock:
                sub.active = False
                subs = self._subscribers.get(code)
                if subs and sub in subs:
                    subs.remove(sub)
                    if not subs:
                        del self._subscribers[code]

        return unsubscribe

    def _enqueue(self, code: str) -> None:
        doc = self._rooms.get(code)
        for sub in self._subscribers.get(code, ()):
            self._pending.append((sub, copy.deepcopy(doc) if doc is not None else None))

    def _drain(self) -> None:
        with self._lock:
            if self._dispatching:
                return
            self._dispatching = True
        try:
            while True:
                with self._lock:
                    if not self._pending:
                        # Cleared under the same lock as the empty check, so a
                        # write landing right after drains its own snapshots.
                        self._dispatching = False
                        return
                    sub, snapshot = self._pending.popleft()
                if not sub.active:
                    continue
                try:
                    sub.on_change(snapshot)
                except Exception:
                    logger.exception("Subscriber for room %s failed", sub.code)
        except BaseException:
            with self._lock:
                self._dispatching = False
            raise

    # -- disconnect hooks ----------------------------------------------------

    def _arm(self, hook: OnDisconnect) -> None:
        with self._lock:
            self._hooks.setdefault(hook.connection_id, {})[(hook.code, hook.path)] = hook

    def _disarm(self, hook: OnDisconnect) -> None:
        with self._lock:
            hooks = self._hooks.get(hook.connection_id)
            if hooks and hooks.get((hook.code, hook.path)) is hook:
                del hooks[(hook.code, hook.path)]

    def disconnect(self, connection_id: str) -> None:
        with self._lock:
            hooks = self._hooks.pop(connection_id, {})
        for hook in hooks.values():
            if not hook.armed:
                continue
            try:
                self.update(hook.code, {hook.path: None})
            except RoomNotFound:
                continue
            logger.debug("Disconnect cleanup %s/%s for %s", hook.code, hook.path, connection_id)

    # -- availability --------------------------------------------------------

    def _check(self) -> None:
        if not self._available:
            raise StoreUnavailable("store is closed")

    def close(self) -> None:
        """Take the store offline; subscribers are told through on_error."""
        with self._lock:
            self._available = False
            subs = [s for group in self._subscribers.values() for s in group]
            self._subscribers.clear()
        for sub in subs:
            sub.active = False
            if sub.on_error is None:
                continue
            try:
                sub.on_error(StoreUnavailable("store is closed"))
            except Exception:
                logger.exception("Error callback for room %s failed", sub.code)
