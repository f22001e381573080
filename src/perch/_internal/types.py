"""Shared type aliases used across perch modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route endpoint: receives (request, route_match) and returns a response value
Endpoint: TypeAlias = Callable[..., Any]

# Error handler: receives (request, error?) and returns a response value
ErrorHandler: TypeAlias = Callable[..., Any]

# Dependency factory registered with ``app.provide()``
Factory: TypeAlias = Callable[[], Any]
