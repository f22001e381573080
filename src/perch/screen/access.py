"""Access guard: OR-semantics permission check for screens."""

from collections.abc import Iterable
from typing import Any

from perch.middleware.auth import has_access


def check_access(permissions: str | Iterable[str] | None, user: Any) -> bool:
    """Return True when *user* may use a screen requiring *permissions*.

    A single identifier counts as a one-item requirement. An empty (or
    ``None``) requirement always passes. Otherwise the user needs at
    least one of the listed identifiers. Anonymous users and ``None``
    hold nothing; this never raises.
    """
    if isinstance(permissions, str):
        permissions = (permissions,)
    required = list(permissions or ())
    if not required:
        return True
    return any(has_access(user, permission) for permission in required)
