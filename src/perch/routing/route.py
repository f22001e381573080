"""Route and RouteMatch."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from perch.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:    ``/users``      (is_param=False)
    Param:     ``/{id}``       (is_param=True, param_name="id")
    Typed:     ``/{id:int}``   (param_type="int")
    Optional:  ``/{method?}``  (optional=True, last segment only)
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"
    optional: bool = False


def parse_path(path: str) -> tuple[PathSegment, ...]:
    """Parse a route path string into segments.

    Examples::

        "/users"               -> (PathSegment("users"),)
        "/users/{id:int}"      -> (..., PathSegment("{id:int}", is_param=True, param_type="int"))
        "/users/{method?}"     -> (..., PathSegment("{method?}", is_param=True, optional=True))
    """
    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        if not (part.startswith("{") and part.endswith("}")):
            segments.append(PathSegment(value=part))
            continue
        inner = part[1:-1]
        optional = inner.endswith("?")
        inner = inner.rstrip("?")
        name, _, param_type = inner.partition(":")
        segments.append(
            PathSegment(
                value=part,
                is_param=True,
                param_name=name,
                param_type=param_type or "str",
                optional=optional,
            )
        )
    for seg in segments[:-1]:
        if seg.optional:
            msg = f"Optional parameter {seg.value!r} must be the last segment of {path!r}."
            raise ConfigurationError(msg)
    return tuple(segments)


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    ``endpoint`` is called as ``endpoint(request, match)``. Screen routes
    carry the screen class in ``screen`` for introspection.
    """

    path: str
    endpoint: Callable[..., Any]
    methods: frozenset[str]
    name: str | None = None
    screen: type | None = None
    segments: tuple[PathSegment, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        if not self.segments:
            object.__setattr__(self, "segments", parse_path(self.path))

    @property
    def variables(self) -> tuple[str, ...]:
        """Declared parameter names, in template order."""
        return tuple(seg.param_name or "" for seg in self.segments if seg.is_param)

    def url(self, *args: Any, **params: Any) -> str:
        """Build a URL by filling parameters positionally, then by name.

        Missing optional parameters are omitted; missing required ones
        raise ``ValueError``. Objects exposing ``route_key()`` are
        rendered by that key.
        """
        values = dict(params)
        for name, value in zip(self.variables, args, strict=False):
            values.setdefault(name, value)
        parts: list[str] = []
        for seg in self.segments:
            if not seg.is_param:
                parts.append(seg.value)
                continue
            value = values.get(seg.param_name or "")
            if value is None:
                if seg.optional:
                    break
                msg = f"Missing value for {seg.param_name!r} building {self.path!r}"
                raise ValueError(msg)
            key = value.route_key() if hasattr(value, "route_key") else value
            parts.append(quote(str(key), safe=""))
        return "/" + "/".join(parts)


@dataclass(slots=True)
class RouteMatch:
    """Result of a successful route match.

    ``path_params`` is the one mutable piece of routing state: route
    binding stores resolved entities back into it under the parameter
    name.
    """

    route: Route
    path_params: dict[str, Any]

    def parameter(self, name: str, default: Any = None) -> Any:
        return self.path_params.get(name, default)

    def set_parameter(self, name: str, value: Any) -> None:
        self.path_params[name] = value

    @property
    def arguments_by_name(self) -> dict[str, Any]:
        """Matched parameters in template order (absent optionals omitted)."""
        return {n: self.path_params[n] for n in self.route.variables if n in self.path_params}
