"""Signed-cookie sessions.

The session is a JSON-serializable dict carried in one cookie and signed
with ``itsdangerous``. It is readable from anywhere inside the request
through ``get_session()``; the auth middleware keeps the logged-in user
id in it.
"""

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from itsdangerous import BadData, URLSafeTimedSerializer

from perch.errors import ConfigurationError
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Next

logger = logging.getLogger("perch.sessions")

_current: ContextVar[dict[str, Any] | None] = ContextVar("perch_session", default=None)


def get_session() -> dict[str, Any]:
    """The mutable session dict of the running request.

    ``LookupError`` outside a request served through ``SessionMiddleware``.
    """
    data = _current.get()
    if data is None:
        msg = "No active session. Add SessionMiddleware to the app before reading the session."
        raise LookupError(msg)
    return data


def regenerate_session() -> dict[str, Any]:
    """Empty the session in place (login and logout call this)."""
    data = get_session()
    data.clear()
    return data


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Cookie and signing settings.

    Keep ``max_age`` (seconds) in line with ``AppConfig.session_lifetime``
    (minutes): a screen state key should not outlive its session.
    """

    secret_key: str
    cookie_name: str = "perch_session"
    max_age: int = 7200
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


class SessionMiddleware:
    """Load the session before dispatch and write it back afterwards.

    Usage::

        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
    """

    __slots__ = ("_settings", "_signer")

    def __init__(self, config: SessionConfig) -> None:
        if not config.secret_key:
            msg = "SessionConfig.secret_key must not be empty."
            raise ConfigurationError(msg)
        self._settings = config
        self._signer = URLSafeTimedSerializer(config.secret_key, salt="perch.session")

    def loads(self, cookie: str | None) -> dict[str, Any]:
        """Verify and decode *cookie*; anything invalid yields a fresh session."""
        if not cookie:
            return {}
        try:
            data = self._signer.loads(cookie, max_age=self._settings.max_age)
        except BadData:
            logger.debug("Ignoring session cookie with a bad or expired signature")
            return {}
        return data if isinstance(data, dict) else {}

    def dumps(self, session: dict[str, Any]) -> str:
        return self._signer.dumps(session)

    async def __call__(self, request: Request, next: Next) -> Response:
        settings = self._settings
        session = self.loads(request.cookies.get(settings.cookie_name))
        token = _current.set(session)
        try:
            response = await next(request)
        finally:
            _current.reset(token)
        return response.with_cookie(
            settings.cookie_name,
            self.dumps(session),
            max_age=settings.max_age,
            path=settings.path,
            secure=settings.secure,
            httponly=settings.httponly,
            samesite=settings.samesite,
        )
