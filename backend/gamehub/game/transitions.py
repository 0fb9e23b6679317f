from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Union

from ..errors import RoomNotFound, StoreUnavailable, VersionConflict
from ..store.base import RoomStore
from .models import Room

logger = logging.getLogger(__name__)


class _Delete:
    def __repr__(self) -> str:
        return "DELETE"


# Returned by a transition to remove the whole room.
DELETE = _Delete()

Changes = dict[str, Any]
Transition = Callable[[Room], Optional[Union[Changes, _Delete]]]


def apply_transition(
    store: RoomStore,
    code: str,
    transition: Transition,
    *,
    versioned: bool = True,
    retries: int = 5,
) -> Room | None:
    """Read the room, let ``transition`` compute path changes, write them.

    Every mutation of shared room state goes through here. With ``versioned``
    the write is conditional on the version that was read and is retried on
    conflict; without it the store's last-write-wins applies. Returns the
    room as written, or None when the transition was a no-op or a delete.
    """
    attempt = 0
    while True:
        doc = store.get(code)
        if doc is None:
            raise RoomNotFound(code)
        room = Room.from_doc(doc)
        changes = transition(room)
        if changes is None:
            return None
        try:
            if changes is DELETE:
                store.remove(code, expected_version=room.version if versioned else None)
                return None
            store.update(code, changes, expected_version=room.version if versioned else None)
        except VersionConflict as exc:
            attempt += 1
            if attempt > retries:
                raise StoreUnavailable(f"room {code} kept changing under us") from exc
            logger.debug("Version conflict on %s (%s), retry %d", code, exc, attempt)
            continue
        written = store.get(code)
        return Room.from_doc(written) if written is not None else None
