"""Security audit trail.

Perch reports denied screen access and logins/logouts as
``SecurityEvent`` records. Each one is logged on ``perch.security`` at
debug level; an application that wants them elsewhere (a SIEM, metrics,
its own log format) installs a sink with ``set_security_event_sink``.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from time import time
from typing import Any

_log = logging.getLogger("perch.security")


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    name: str
    timestamp: float = field(default_factory=time)
    path: str | None = None
    method: str | None = None
    user_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


type SecurityEventSink = Callable[[SecurityEvent], None]

_lock = threading.Lock()
_installed: SecurityEventSink | None = None


def set_security_event_sink(sink: SecurityEventSink | None) -> None:
    """Install *sink* process-wide; ``None`` removes it."""
    global _installed
    with _lock:
        _installed = sink


def logging_sink(event: SecurityEvent) -> None:
    """Ready-made sink: denials at WARNING, everything else at INFO."""
    _log.log(
        logging.WARNING if event.name.endswith(".denied") else logging.INFO,
        "%s user=%s %s %s %s",
        event.name,
        event.user_id or "-",
        event.method or "-",
        event.path or "-",
        event.details,
    )


def emit_security_event(
    name: str,
    *,
    request: Any | None = None,
    user_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Record an event; path and method are taken from *request* if given."""
    event = SecurityEvent(
        name=name,
        path=getattr(request, "path", None),
        method=getattr(request, "method", None),
        user_id=user_id,
        details=dict(details or {}),
    )
    _log.debug("security event %s", name)
    with _lock:
        sink = _installed
    if sink is not None:
        sink(event)
