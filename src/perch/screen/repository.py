"""Repository: read-only accessor over a handler's query result.

Layouts read their data through a ``Repository`` instead of the raw
mapping, using dotted paths for nested values::

    repo = Repository({"user": {"name": "Ada"}, "rows": [1, 2, 3]})
    repo.get("user.name")   # "Ada"
    repo.count("rows")      # 3
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

_MISSING = object()


class Repository(Mapping[str, Any]):
    """Immutable view over a query result mapping."""

    __slots__ = ("_items",)

    def __init__(self, items: Mapping[str, Any] | None = None) -> None:
        if items is not None and not isinstance(items, Mapping):
            msg = f"Screen query must return a mapping, got {type(items).__name__}"
            raise TypeError(msg)
        self._items: dict[str, Any] = dict(items or {})

    def __getitem__(self, key: str) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Repository({self._items!r})"

    def _lookup(self, path: str) -> Any:
        if path in self._items:
            return self._items[path]
        current: Any = self._items
        for part in path.split("."):
            if isinstance(current, Mapping):
                current = current.get(part, _MISSING)
            elif isinstance(current, (list, tuple)) and part.isdigit():
                index = int(part)
                current = current[index] if index < len(current) else _MISSING
            else:
                current = getattr(current, part, _MISSING)
            if current is _MISSING:
                return _MISSING
        return current

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def has(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def count(self, key: str | None = None) -> int:
        """Number of items at *key* (or of top-level keys when omitted)."""
        if key is None:
            return len(self._items)
        value = self.get(key)
        try:
            return len(value)
        except TypeError:
            return 0

    def to_dict(self) -> dict[str, Any]:
        return dict(self._items)
