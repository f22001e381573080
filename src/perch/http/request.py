"""Immutable HTTP request.

Frozen metadata with async body access. Path parameters are the one
mutable part: the argument binder writes resolved entities back into
them so later steps of the same request can reuse the lookup.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from perch._internal.asgi import Receive, Scope
from perch.http.cookies import parse_cookies
from perch.http.params import Headers, Params


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, etc.) is frozen at creation.
    Body is accessed asynchronously via ``.body()``, ``.json()``, ``.form()``.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: Params = field(default_factory=Params)
    path_params: dict[str, Any] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)

    _receive: Receive = field(default=_empty_receive, repr=False, compare=False)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_fragment(self) -> bool:
        """True if this is an htmx fragment request (HX-Request header)."""
        return self.headers.get("hx-request") == "true"

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def referer(self) -> str | None:
        return self.headers.get("referer")

    @property
    def url(self) -> str:
        """Path plus query string."""
        if self.query.raw:
            return f"{self.path}?{self.query.raw}"
        return self.path

    def is_method(self, method: str) -> bool:
        return self.method == method.upper()

    def with_path_params(self, path_params: dict[str, Any]) -> Request:
        """Return a copy bound to a route match, sharing the body cache."""
        return replace(self, path_params=path_params)

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body. The ASGI receive is consumed once."""
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks: list[bytes] = []
        while True:
            message = await self._receive()
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        self._cache["_body"] = b"".join(chunks)
        return self._cache["_body"]

    async def json(self) -> Any:
        return json_module.loads(await self.body())

    async def form(self) -> Params:
        """Parse a URL-encoded body. Non-form bodies yield empty params."""
        if "_form" not in self._cache:
            ct = self.content_type or "application/x-www-form-urlencoded"
            if ct.startswith("application/x-www-form-urlencoded"):
                self._cache["_form"] = Params(await self.body())
            else:
                self._cache["_form"] = Params()
        return self._cache["_form"]

    async def all(self) -> dict[str, Any]:
        """Query string merged with body input (body wins on same key)."""
        data: dict[str, Any] = self.query.to_dict()
        if self.method in ("GET", "HEAD"):
            return data
        if "json" in (self.content_type or ""):
            payload = await self.json() if await self.body() else {}
            if isinstance(payload, dict):
                data.update(payload)
            return data
        data.update((await self.form()).to_dict())
        return data

    async def input(self, name: str, default: Any = None) -> Any:
        """Return one input value from the body or the query string."""
        return (await self.all()).get(name, default)

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers(tuple(scope.get("headers", ())))
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=headers,
            query=Params(scope.get("query_string", b"")),
            cookies=parse_cookies(headers.get("cookie", "")),
            _receive=receive,
        )
