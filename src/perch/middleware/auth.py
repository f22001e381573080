"""Principals for screens: who is calling, and what may they do.

``AuthMiddleware`` reads the user id that ``login()`` left in the
session, loads the user through the app's callback and publishes it for
the rest of the request. The screen dispatcher asks ``current_user()``
for permission checks and ``current_user_id()`` to scope state keys.

Usage::

    from perch.middleware.auth import AuthConfig, AuthMiddleware, login, logout
    from perch.middleware.sessions import SessionConfig, SessionMiddleware

    app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
    app.add_middleware(AuthMiddleware(AuthConfig(load_user=users.get)))
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from perch._internal.invoke import invoke
from perch.errors import ConfigurationError
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Next
from perch.security.audit import emit_security_event


@runtime_checkable
class User(Protocol):
    """What perch needs from an application's user model."""

    @property
    def id(self) -> str: ...

    @property
    def is_authenticated(self) -> bool: ...


@runtime_checkable
class UserWithPermissions(User, Protocol):
    """A user whose grants are a flat set of permission identifiers."""

    @property
    def permissions(self) -> frozenset[str]: ...


@dataclass(frozen=True, slots=True)
class AnonymousUser:
    """Stands in for the caller when nobody is logged in. Holds nothing."""

    id: str = ""
    is_authenticated: bool = False
    permissions: frozenset[str] = frozenset()


ANONYMOUS = AnonymousUser()

_principal: ContextVar[Any] = ContextVar("perch_user")
_settings: ContextVar[AuthConfig | None] = ContextVar("perch_auth_config", default=None)


def get_user() -> Any:
    """The request's user, ``AnonymousUser`` when logged out.

    ``LookupError`` outside a request served through ``AuthMiddleware``.
    """
    try:
        return _principal.get()
    except LookupError:
        msg = "No auth context. Add AuthMiddleware to the app before reading the user."
        raise LookupError(msg) from None


def current_user() -> Any:
    """Like ``get_user()``, but anonymous instead of raising."""
    return _principal.get(ANONYMOUS)


def current_user_id() -> str:
    """Id of the logged-in user, ``""`` for anonymous callers."""
    user = current_user()
    if not getattr(user, "is_authenticated", False):
        return ""
    return str(getattr(user, "id", "") or "")


def has_access(user: Any, permission: str) -> bool:
    """Whether *user* holds *permission*.

    A model's own ``has_access(permission)`` wins, so applications can
    implement roles or wildcards. Otherwise ``permission`` must be in
    ``user.permissions``. Unauthenticated callers hold nothing.
    """
    if not getattr(user, "is_authenticated", False):
        return False
    check = getattr(user, "has_access", None)
    if callable(check):
        return bool(check(permission))
    return isinstance(user, UserWithPermissions) and permission in user.permissions


def _require_settings(action: str) -> AuthConfig:
    settings = _settings.get()
    if settings is None:
        msg = f"{action}() requires AuthMiddleware to be active."
        raise LookupError(msg)
    return settings


def login(user: Any) -> None:
    """Start a fresh session owned by *user*."""
    from perch.middleware.sessions import regenerate_session

    settings = _require_settings("login")
    regenerate_session()[settings.session_key] = user.id
    _principal.set(user)
    emit_security_event("auth.login.success", user_id=str(user.id))


def logout() -> None:
    """Drop the session and continue the request as anonymous."""
    from perch.middleware.sessions import regenerate_session

    _require_settings("logout")
    user_id = current_user_id()
    regenerate_session()
    _principal.set(ANONYMOUS)
    emit_security_event("auth.logout.success", user_id=user_id or None)


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """How ``AuthMiddleware`` finds the user.

    Attributes:
        load_user: Called with the stored id; sync or async; ``None`` if gone.
        session_key: Session entry holding the user id.
        exclude_paths: Paths served without loading a user.
    """

    load_user: Callable[[str], Any | Awaitable[Any]] | None = None
    session_key: str = "user_id"
    exclude_paths: frozenset[str] = frozenset()


class AuthMiddleware:
    """Publish the session's user for the duration of the request.

    Add it after ``SessionMiddleware`` so the session is already loaded.
    """

    __slots__ = ("_settings",)

    def __init__(self, config: AuthConfig) -> None:
        if config.load_user is None:
            msg = "AuthConfig.load_user must be set."
            raise ConfigurationError(msg)
        self._settings = config

    async def _load(self) -> Any:
        from perch.middleware.sessions import get_session

        try:
            session = get_session()
        except LookupError:
            msg = "AuthMiddleware requires SessionMiddleware to be added before it."
            raise ConfigurationError(msg) from None

        user_id = session.get(self._settings.session_key)
        if not user_id:
            return None
        return await invoke(self._settings.load_user, str(user_id))

    async def __call__(self, request: Request, next: Next) -> Response:
        user = None
        if request.path not in self._settings.exclude_paths:
            user = await self._load()

        user_token = _principal.set(ANONYMOUS if user is None else user)
        settings_token = _settings.set(self._settings)
        try:
            return await next(request)
        finally:
            _principal.reset(user_token)
            _settings.reset(settings_token)
