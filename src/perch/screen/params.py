"""Handler parameter descriptors.

Each screen handler's signature is analysed once into a tuple of
``ParamSpec`` and memoized per function; the binder only ever consults
the descriptors.

Type tags:

- ``annotation is None``: primitive or unannotated; raw value passes through.
- ``annotation`` is a class: candidate for container resolution and
  route binding.
"""

import inspect
import types
import typing
from collections.abc import Callable
from dataclasses import dataclass
from functools import cache
from typing import Any, Protocol, runtime_checkable

# Annotations bound positionally without resolution
PRIMITIVES: frozenset[Any] = frozenset(
    {str, int, float, bool, bytes, complex, list, tuple, dict, set, frozenset, object}
)

# Raw values that are data, not already-resolved objects
SCALARS: tuple[type, ...] = (str, int, float, bool, bytes, list, tuple, dict, set, frozenset)


@runtime_checkable
class RouteBindable(Protocol):
    """A type that can look itself up from a raw route key.

    ``resolve_route_binding`` returns the entity for *value*, or ``None``
    when nothing matches. May be sync or async.
    """

    def resolve_route_binding(self, value: Any) -> Any: ...


@dataclass(frozen=True, slots=True)
class ParamSpec:
    """One declared handler parameter."""

    name: str
    annotation: type | None = None
    has_default: bool = False
    default: Any = None

    @property
    def is_primitive(self) -> bool:
        return self.annotation is None


def _class_of(annotation: Any) -> type | None:
    """Reduce an annotation to the class the binder should resolve.

    ``X | None`` and ``Optional[X]`` unwrap to ``X``. Builtins, unions of
    several classes, generics and ``Any`` count as primitive.
    """
    if annotation is inspect.Parameter.empty or annotation is Any:
        return None
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(members) != 1:
            return None
        return _class_of(members[0])
    if origin is not None or not isinstance(annotation, type):
        return None
    if annotation in PRIMITIVES:
        return None
    return annotation


def describe(func: Callable[..., Any]) -> tuple[ParamSpec, ...]:
    """Return the parameter descriptors for *func*.

    Bound methods share the descriptors of their underlying function, so
    the analysis runs once per handler, not once per screen instance.
    """
    return _describe(getattr(func, "__func__", func))


@cache
def _describe(func: Callable[..., Any]) -> tuple[ParamSpec, ...]:
    # self/cls and variadic parameters never receive bound arguments
    sig = inspect.signature(func, eval_str=True)
    params = list(sig.parameters.values())
    if params and params[0].name in ("self", "cls"):
        params = params[1:]
    return tuple(
        ParamSpec(
            name=p.name,
            annotation=_class_of(p.annotation),
            has_default=p.default is not inspect.Parameter.empty,
            default=None if p.default is inspect.Parameter.empty else p.default,
        )
        for p in params
        if p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    )


def is_resolved_object(value: Any) -> bool:
    """True for values the caller already resolved (not None, not plain data)."""
    return value is not None and not isinstance(value, SCALARS)
