"""Read-only multi-valued string maps: query strings, form bodies, headers.

Indexing a key gives its first value; ``get_list`` gives all of them.
``Params`` keeps keys as sent, ``Headers`` folds them to lower case.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from urllib.parse import parse_qs


class _MultiMap(Mapping[str, str]):
    __slots__ = ("_values",)

    _values: dict[str, list[str]]

    def _key(self, key: str) -> str:
        return key

    def __getitem__(self, key: str) -> str:
        return self._values[self._key(key)][0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._key(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        found = self._values.get(self._key(key))
        return found[0] if found else default

    def get_list(self, key: str) -> list[str]:
        return list(self._values.get(self._key(key), ()))

    def to_dict(self) -> dict[str, str]:
        """First value per key, in first-seen order."""
        return {key: found[0] for key, found in self._values.items()}


class Params(_MultiMap):
    """Decoded ``application/x-www-form-urlencoded`` data.

    Blank values are kept: ``?q=`` yields ``{"q": ""}``.
    """

    __slots__ = ("_source",)

    def __init__(self, raw: bytes | str = b"") -> None:
        self._source = raw.decode("latin-1") if isinstance(raw, bytes) else raw
        self._values = parse_qs(self._source, keep_blank_values=True)

    @property
    def raw(self) -> str:
        """The encoded text this was parsed from."""
        return self._source


class Headers(_MultiMap):
    """Request headers from ASGI ``(name, value)`` byte pairs."""

    __slots__ = ("_pairs",)

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        self._pairs = tuple(raw)
        self._values = {}
        for name, value in self._pairs:
            self._values.setdefault(name.decode("latin-1").lower(), []).append(
                value.decode("latin-1")
            )

    @classmethod
    def from_dict(cls, headers: Mapping[str, str]) -> Headers:
        return cls(
            tuple((k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers.items())
        )

    def _key(self, key: str) -> str:
        return key.lower()

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        return self._pairs
