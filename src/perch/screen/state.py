"""State store: single-use snapshots of a screen's exposed state.

The initial GET render captures the screen's exposed fields (``fill``)
and persists them under a fresh key that the page embeds as the
``_screen`` hidden input. The next state-changing request echoes the key
back; ``fill_session`` pulls the snapshot (deleting it) and reapplies it
to the new screen instance before the handler runs.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from perch.cache import Cache

if TYPE_CHECKING:
    from perch.screen.screen import Screen

logger = logging.getLogger("perch.screen")


class StateStore:
    """Persist and restore screen state through a ``Cache``.

    Keys look like ``screen-<user id>-<uuid4>``; anonymous users get an
    empty id segment.
    """

    __slots__ = ("_cache", "_prefix", "_ttl")

    def __init__(self, cache: Cache, *, ttl: float, prefix: str = "screen") -> None:
        self._cache = cache
        self._ttl = ttl
        self._prefix = prefix

    def new_key(self, principal_id: str) -> str:
        return f"{self._prefix}-{principal_id}-{uuid.uuid4()}"

    def persist(self, principal_id: str, snapshot: Mapping[str, Any]) -> str:
        """Store *snapshot* under a new key and return the key."""
        key = self.new_key(principal_id)
        # uuid4 keys do not collide; add() keeps an existing entry if one ever did
        self._cache.add(key, dict(snapshot), self._ttl)
        logger.debug("Persisted %d state field(s) under %s", len(snapshot), key)
        return key

    def restore(self, key: str | None) -> dict[str, Any]:
        """Pull the snapshot for *key*; ``{}`` if absent, expired or consumed."""
        if not key:
            return {}
        snapshot = self._cache.pull(key)
        if snapshot is None:
            logger.debug("No live state snapshot for %s", key)
            return {}
        return dict(snapshot)

    def fill(self, screen: Screen, principal_id: str, query: Mapping[str, Any]) -> str:
        """Apply the exposed subset of *query* to *screen* and persist it."""
        exposed = screen.exposed_fields()
        values = {name: value for name, value in query.items() if name in exposed}
        for name, value in values.items():
            setattr(screen, name, value)
        return self.persist(principal_id, values)

    def fill_session(self, screen: Screen, key: str | None) -> dict[str, Any]:
        """Restore the snapshot for *key* onto *screen*; returns what was applied."""
        snapshot = self.restore(key)
        exposed = screen.exposed_fields()
        applied = {name: value for name, value in snapshot.items() if name in exposed}
        for name, value in applied.items():
            setattr(screen, name, value)
        return applied
