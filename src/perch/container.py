"""Dependency resolution for screen handler parameters and layouts.

``app.provide(SomeType, factory)`` registers a zero-argument factory.
Types without a provider are built by calling the class with no
arguments, the way a service container auto-wires concrete classes.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from perch.errors import BindingFailure

logger = logging.getLogger("perch.container")


class Container:
    """Type-keyed factory registry.

    Usage::

        container = Container({UserRepository: lambda: UserRepository(db)})
        repo = container.resolve(UserRepository)
    """

    __slots__ = ("_providers",)

    def __init__(self, providers: Mapping[type, Callable[[], Any]] | None = None) -> None:
        self._providers: dict[type, Callable[[], Any]] = dict(providers or {})

    def provide(self, annotation: type, factory: Callable[[], Any]) -> None:
        self._providers[annotation] = factory

    def __contains__(self, annotation: object) -> bool:
        return annotation in self._providers

    def resolve(self, annotation: Any) -> Any:
        """Return a fresh instance for *annotation*.

        Raises ``BindingFailure`` when there is no provider and the type
        cannot be constructed without arguments.
        """
        factory = self._providers.get(annotation)
        if factory is not None:
            return factory()

        if not isinstance(annotation, type):
            raise BindingFailure(annotation, "not a class and no provider registered")

        try:
            return annotation()
        except TypeError as exc:
            logger.debug("Auto-wiring %s failed: %s", annotation.__qualname__, exc)
            raise BindingFailure(annotation, str(exc)) from exc
