"""Trie router for screen and endpoint routes.

Routes are added while the app is being set up; ``compile()`` seals the
tree before the first request. Matching walks one trie level per path
segment, trying literal segments before the parameter edge.
"""

import logging
import re
from dataclasses import dataclass, field

from perch.errors import ConfigurationError, MethodNotAllowed, NotFound
from perch.routing.params import CONVERTERS, convert_param
from perch.routing.route import Route, RouteMatch

logger = logging.getLogger("perch.routing")


@dataclass(slots=True)
class _Node:
    literals: dict[str, "_Node"] = field(default_factory=dict)
    param: "_Edge | None" = None
    # HTTP method -> route terminating at this node
    endpoints: dict[str, Route] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class _Edge:
    """Parameter edge: one per node, shared by every route through it."""

    converter: str
    pattern: re.Pattern[str]
    target: _Node


class Router:
    """Route table keyed by path shape and HTTP method.

    Parameter names belong to routes, not to the trie: two routes may
    capture the same position under different names. A trailing
    ``{name?}`` parameter also terminates the route at its parent node,
    so ``/users/{method?}`` answers both ``/users`` and ``/users/save``.
    When two routes end on the same node for a method, the one added
    first serves it.

    Usage::

        router = Router()
        router.add(Route("/users/{id:int}/{method?}", endpoint, frozenset({"GET"})))
        router.compile()
        router.match("GET", "/users/42").path_params  # {"id": 42}
    """

    __slots__ = ("_by_name", "_root", "_routes", "_sealed")

    def __init__(self) -> None:
        self._root = _Node()
        self._sealed = False
        self._routes: list[Route] = []
        self._by_name: dict[str, Route] = {}

    def add(self, route: Route) -> None:
        if self._sealed:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)
        self._index_name(route)

        node = self._root
        for seg in route.segments:
            if seg.optional:
                self._terminate(node, route)
            node = self._descend(node, seg.param_type, route.path) if seg.is_param else (
                node.literals.setdefault(seg.value, _Node())
            )
        self._terminate(node, route)
        self._routes.append(route)

    def _index_name(self, route: Route) -> None:
        if route.name is None:
            return
        existing = self._by_name.setdefault(route.name, route)
        if existing.path != route.path:
            msg = f"Route name {route.name!r} is already used by {existing.path!r}."
            raise ConfigurationError(msg)

    @staticmethod
    def _descend(node: _Node, converter: str, path: str) -> _Node:
        if converter not in CONVERTERS:
            msg = f"Unknown converter {converter!r} in {path!r}."
            raise ConfigurationError(msg)
        if node.param is None:
            regex, _ = CONVERTERS[converter]
            node.param = _Edge(converter, re.compile(f"^{regex}$"), _Node())
        return node.param.target

    @staticmethod
    def _terminate(node: _Node, route: Route) -> None:
        for method in route.methods:
            existing = node.endpoints.setdefault(method, route)
            if existing is not route:
                logger.debug(
                    "%s %s is shadowed by %s at the same path shape",
                    method,
                    route.path,
                    existing.path,
                )

    @property
    def routes(self) -> list[Route]:
        """Registered routes, oldest first."""
        return list(self._routes)

    def compile(self) -> None:
        self._sealed = True

    def named(self, name: str) -> Route:
        """The route registered as *name*; ``LookupError`` if there is none."""
        route = self._by_name.get(name)
        if route is None:
            msg = f"No route named {name!r}."
            raise LookupError(msg)
        return route

    def match(self, method: str, path: str) -> RouteMatch:
        """Resolve *method* and *path* to a route and its parameters.

        ``NotFound`` when no route has this path shape,
        ``MethodNotAllowed`` when one does but not for *method*.
        HEAD is served by GET routes.
        """
        segments = [part for part in path.split("/") if part]
        found = self._walk(self._root, segments, ())
        if found is None:
            raise NotFound(f"No route matches {method} {path!r}")

        node, captured = found
        route = node.endpoints.get(method)
        if route is None and method == "HEAD":
            route = node.endpoints.get("GET")
        if route is None:
            raise MethodNotAllowed(frozenset(node.endpoints))
        return RouteMatch(route=route, path_params=dict(zip(route.variables, captured, strict=False)))

    def _walk(
        self,
        node: _Node,
        segments: list[str],
        captured: tuple[object, ...],
    ) -> tuple[_Node, tuple[object, ...]] | None:
        if not segments:
            return (node, captured) if node.endpoints else None

        head, rest = segments[0], segments[1:]
        literal = node.literals.get(head)
        if literal is not None:
            found = self._walk(literal, rest, captured)
            if found is not None:
                return found

        edge = node.param
        if edge is None or not edge.pattern.match(head):
            return None
        return self._walk(edge.target, rest, (*captured, convert_param(head, edge.converter)))
