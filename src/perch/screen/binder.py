"""Argument binder: positional request values onto handler parameters.

Given a handler's ``ParamSpec`` tuple and the ordered raw values of a
request, produce one bound argument per declared parameter:

1. Primitive or unannotated parameter: the raw value at that position.
2. Raw value already an object: passed through untouched.
3. Otherwise a fresh instance of the declared class from the container.
4. No raw value, or the instance is not ``RouteBindable``: that instance.
5. Otherwise ``resolve_route_binding(raw)``. A miss with no default
   raises ``EntityNotFound``; a hit is written back into the route's
   parameters under the parameter name.
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from perch._internal.invoke import invoke
from perch.container import Container
from perch.errors import EntityNotFound
from perch.routing.route import RouteMatch
from perch.screen.params import ParamSpec, RouteBindable, describe, is_resolved_object

logger = logging.getLogger("perch.screen")

_ABSENT = object()


class ArgumentBinder:
    """Bind raw request arguments to a handler's declared parameters."""

    __slots__ = ("_container",)

    def __init__(self, container: Container) -> None:
        self._container = container

    @property
    def container(self) -> Container:
        return self._container

    async def bind(
        self,
        handler: Callable[..., Any] | Sequence[ParamSpec],
        raw: Sequence[Any],
        route: RouteMatch | None = None,
    ) -> list[Any]:
        """Return the bound arguments, positionally aligned with *handler*."""
        specs = describe(handler) if callable(handler) else tuple(handler)
        return [
            await self._bind_one(spec, raw[index] if index < len(raw) else _ABSENT, route)
            for index, spec in enumerate(specs)
        ]

    async def _bind_one(self, spec: ParamSpec, original: Any, route: RouteMatch | None) -> Any:
        if original is _ABSENT:
            # Nothing supplied at this position: Python defaults still apply
            if spec.is_primitive:
                return spec.default if spec.has_default else None
            original = None

        if spec.annotation is None or is_resolved_object(original):
            return original

        instance = self._container.resolve(spec.annotation)

        if original is None or not isinstance(instance, RouteBindable):
            return instance

        model = await invoke(instance.resolve_route_binding, original)
        if model is None:
            if not spec.has_default:
                raise EntityNotFound(spec.annotation, (original,))
            logger.debug(
                "No %s for key %r; %s keeps its default instance",
                spec.annotation.__qualname__,
                original,
                spec.name,
            )
            return instance

        if route is not None:
            route.set_parameter(spec.name, model)
        return model
