"""Key/value cache backing screen state snapshots.

The state store needs two atomic operations from its cache: set-if-absent
with a TTL (``add``) and get-and-delete (``pull``). ``pull`` is what makes
snapshot keys single-use: of two concurrent pulls of the same key exactly
one sees the value.

``MemoryCache`` is the in-process backend. Shared deployments plug in any
object satisfying the ``Cache`` protocol.
"""

import heapq
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

_MISSING = object()


@runtime_checkable
class Cache(Protocol):
    """Cache contract required by ``StateStore``."""

    def add(self, key: str, value: Any, ttl: float) -> bool: ...
    def put(self, key: str, value: Any, ttl: float) -> None: ...
    def get(self, key: str, default: Any = None) -> Any: ...
    def pull(self, key: str, default: Any = None) -> Any: ...
    def forget(self, key: str) -> bool: ...


class MemoryCache:
    """Thread-safe in-memory cache with per-entry expiry.

    Reads drop an expired key on access; every write also sweeps all
    keys whose deadline has passed, using a heap ordered by expiry.
    ``clock`` is injectable so tests can move time forward without
    sleeping.
    """

    __slots__ = ("_clock", "_deadlines", "_entries", "_lock")

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[Any, float]] = {}
        self._deadlines: list[tuple[float, str]] = []
        self._lock = threading.Lock()
        self._clock = clock

    def _sweep(self, now: float) -> None:
        """Drop every entry expired at *now*. Caller holds the lock."""
        while self._deadlines and self._deadlines[0][0] <= now:
            expires_at, key = heapq.heappop(self._deadlines)
            entry = self._entries.get(key)
            # Skip stale heap items for keys rewritten with a later deadline
            if entry is not None and entry[1] == expires_at:
                del self._entries[key]

    def _store(self, key: str, value: Any, ttl: float) -> None:
        now = self._clock()
        self._sweep(now)
        expires_at = now + ttl
        self._entries[key] = (value, expires_at)
        heapq.heappush(self._deadlines, (expires_at, key))

    def _live(self, key: str) -> Any:
        """Return the stored value or ``_MISSING``. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return _MISSING
        return value

    def add(self, key: str, value: Any, ttl: float) -> bool:
        """Store *value* unless a live entry exists. Returns True if stored."""
        with self._lock:
            if self._live(key) is not _MISSING:
                return False
            self._store(key, value, ttl)
            return True

    def put(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._store(key, value, ttl)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._live(key)
        return default if value is _MISSING else value

    def pull(self, key: str, default: Any = None) -> Any:
        """Atomically read and delete *key*."""
        with self._lock:
            value = self._live(key)
            if value is _MISSING:
                return default
            del self._entries[key]
            return value

    def forget(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, expires_at in self._entries.values() if expires_at > now)
