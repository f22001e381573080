"""In-process ASGI client for exercising perch apps in tests.

Requests go straight into ``App.__call__`` and come back as the same
``Response`` type handlers produce. The client keeps a cookie jar, so a
login on one request is visible to the next.
"""

from __future__ import annotations

import json as json_module
from typing import Any
from urllib.parse import urlencode

from perch.app import App
from perch.http.cookies import parse_cookies
from perch.http.response import Response

_FORM = "application/x-www-form-urlencoded"


class TestClient:
    """Drive a perch ``App`` without a server.

    Usage::

        async with TestClient(app) as client:
            page = await client.get("/users/1")
            done = await client.post("/users/1/save", form={"_screen": key})
    """

    __test__ = False  # not a pytest test class

    __slots__ = ("app", "cookies")

    def __init__(self, app: App) -> None:
        self.app = app
        self.cookies: dict[str, str] = {}

    async def __aenter__(self) -> TestClient:
        self.app._ensure_frozen()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.cookies.clear()

    async def get(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: dict[str, Any] | None = None,
    ) -> Response:
        return await self.request("GET", path, headers=headers, query=query)

    async def post(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: dict[str, Any] | None = None,
        form: dict[str, Any] | None = None,
        json: Any = None,
        body: bytes | None = None,
    ) -> Response:
        """POST *form* (url-encoded), *json*, or a raw *body*."""
        sent_headers = dict(headers or {})
        payload = body or b""
        if form is not None:
            payload = urlencode(form, doseq=True).encode("utf-8")
            sent_headers.setdefault("content-type", _FORM)
        elif json is not None:
            payload = json_module.dumps(json).encode("utf-8")
            sent_headers.setdefault("content-type", "application/json")
        return await self.request("POST", path, headers=sent_headers, query=query, body=payload)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: dict[str, Any] | None = None,
        body: bytes | None = None,
    ) -> Response:
        """Run one request through the app and collect its response."""
        scope = self._scope(method, path, headers or {}, query)
        pending = [body or b""]
        messages: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            if pending:
                return {"type": "http.request", "body": pending.pop(), "more_body": False}
            return {"type": "http.disconnect"}

        async def send(message: dict[str, Any]) -> None:
            messages.append(message)

        await self.app(scope, receive, send)
        return self._collect(messages)

    def _scope(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        query: dict[str, Any] | None,
    ) -> dict[str, Any]:
        path_part, _, query_string = path.partition("?")
        if query:
            extra = urlencode(query, doseq=True)
            query_string = f"{query_string}&{extra}" if query_string else extra

        raw_headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()]
        if self.cookies and "cookie" not in {k.lower() for k in headers}:
            jar = "; ".join(f"{name}={value}" for name, value in self.cookies.items())
            raw_headers.append((b"cookie", jar.encode("latin-1")))

        return {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": method.upper(),
            "scheme": "http",
            "path": path_part,
            "raw_path": path_part.encode("latin-1"),
            "query_string": query_string.encode("latin-1"),
            "root_path": "",
            "headers": raw_headers,
            "server": ("testserver", 80),
            "client": ("127.0.0.1", 0),
        }

    def _collect(self, messages: list[dict[str, Any]]) -> Response:
        status = 200
        content_type = "text/html; charset=utf-8"
        headers: list[tuple[str, str]] = []
        chunks: list[bytes] = []
        for message in messages:
            if message["type"] == "http.response.body":
                chunks.append(message.get("body", b""))
                continue
            if message["type"] != "http.response.start":
                continue
            status = message["status"]
            for raw_name, raw_value in message.get("headers", []):
                name, value = raw_name.decode("latin-1"), raw_value.decode("latin-1")
                if name == "content-type":
                    content_type = value
                elif name != "content-length":
                    headers.append((name, value))
                if name == "set-cookie":
                    self.cookies.update(parse_cookies(value.split(";", 1)[0]))
        return Response(
            body=b"".join(chunks),
            status=status,
            content_type=content_type,
            headers=tuple(headers),
        )
