"""Response values returned by endpoints and screen handlers.

``Response`` is frozen; every ``with_*`` call produces a modified copy,
so middleware can decorate a response without touching the original.
``Redirect`` is converted to a ``Response`` during negotiation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from perch.http.cookies import SetCookie


@dataclass(frozen=True, slots=True)
class Response:
    """Status, headers, cookies and a text or binary body."""

    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/html; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()
    cookies: tuple[SetCookie, ...] = ()

    def with_status(self, status: int) -> Response:
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        return self.with_headers({name: value})

    def with_headers(self, headers: Mapping[str, str]) -> Response:
        return replace(self, headers=self.headers + tuple(headers.items()))

    def with_cookie(self, name: str, value: str, **attributes: Any) -> Response:
        """Copy with one more ``Set-Cookie``; *attributes* as on ``SetCookie``."""
        return replace(self, cookies=(*self.cookies, SetCookie(name, value, **attributes)))

    def header(self, name: str) -> str | None:
        """First value of header *name*, compared case-insensitively."""
        wanted = name.lower()
        return next((value for key, value in self.headers if key.lower() == wanted), None)

    @property
    def body_bytes(self) -> bytes:
        return self.body.encode("utf-8") if isinstance(self.body, str) else self.body

    @property
    def text(self) -> str:
        return self.body.decode("utf-8") if isinstance(self.body, bytes) else self.body


@dataclass(frozen=True, slots=True)
class Redirect:
    """Send the browser to *url*.

    A screen handler that returns nothing gets ``Redirect.back(request)``:
    the referring page, or *fallback* when the browser sent no referer.
    """

    url: str
    status: int = 302
    headers: tuple[tuple[str, str], ...] = ()

    @classmethod
    def back(cls, request: object, fallback: str = "/") -> Redirect:
        return cls(getattr(request, "referer", None) or fallback)
