"""Middleware: protocol plus the session and auth layers screens rely on."""

from perch.middleware.auth import AuthConfig, AuthMiddleware
from perch.middleware.protocol import Middleware, Next
from perch.middleware.sessions import SessionConfig, SessionMiddleware

__all__ = [
    "AuthConfig",
    "AuthMiddleware",
    "Middleware",
    "Next",
    "SessionConfig",
    "SessionMiddleware",
]
