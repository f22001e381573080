"""Screen dispatcher: one request against one screen instance.

GET renders the full page (or redirects when the URL carries more
positional segments than the route expects). Every other method calls a
handler: restore state from the ``_screen`` token, bind arguments, invoke.
``async_build`` re-renders a single slugged fragment.

Failures propagate unmodified: ``Forbidden`` and ``NotFound`` become
403/404 in the error pipeline, anything else is a 500.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from kida import Environment
from kida.template import Markup

from perch._internal.invoke import invoke
from perch.config import AppConfig
from perch.context import current_route, screen_var
from perch.errors import Forbidden, NotFound
from perch.http.request import Request
from perch.http.response import Redirect, Response
from perch.middleware.auth import current_user, current_user_id
from perch.routing.route import RouteMatch
from perch.screen.access import check_access
from perch.screen.binder import ArgumentBinder
from perch.screen.layout import Layout, as_repository, build_layouts, visible_commands
from perch.screen.screen import Screen
from perch.screen.state import StateStore
from perch.security.audit import emit_security_event
from perch.templating.integration import render_template

logger = logging.getLogger("perch.screen")

# Route parameter naming the handler method on POST
METHOD_PARAMETER = "method"

# Trailing ``{method?}`` slot excluded from the GET arity check
ROUTE_SELECTOR_SLOTS = 1


def merge_arguments(query: Mapping[str, Any], positional: Mapping[Any, Any]) -> list[Any]:
    """Layer *query* first, then *positional*; return the raw values in order.

    Named positional values overwrite same-keyed query values in place.
    Integer-keyed values (plain sequences) are appended.
    """
    merged: dict[Any, Any] = dict(query)
    extra = 0
    for key, value in positional.items():
        if isinstance(key, int):
            merged[("__positional__", extra)] = value
            extra += 1
        else:
            merged[key] = value
    return list(merged.values())


def _route_url(route: RouteMatch, arguments: Mapping[Any, Any]) -> str:
    positional = [v for k, v in arguments.items() if isinstance(k, int)]
    named = {k: v for k, v in arguments.items() if isinstance(k, str)}
    return route.route.url(*positional, **named)


def _keyed(arguments: Mapping[str, Any] | Sequence[Any]) -> dict[Any, Any]:
    if isinstance(arguments, Mapping):
        return dict(arguments)
    return dict(enumerate(arguments))


class ScreenDispatcher:
    """Drive screens through the request life cycle.

    Collaborators are injected: the binder's container, the state store
    with its cache, the kida environment, and the principal accessors
    (defaulting to the auth middleware's context).
    """

    __slots__ = ("_binder", "_config", "_env", "_principal", "_principal_id", "_state")

    def __init__(
        self,
        *,
        binder: ArgumentBinder,
        state: StateStore,
        env: Environment,
        config: AppConfig | None = None,
        principal: Callable[[], Any] = current_user,
        principal_id: Callable[[], str] = current_user_id,
    ) -> None:
        self._binder = binder
        self._state = state
        self._env = env
        self._config = config or AppConfig()
        self._principal = principal
        self._principal_id = principal_id

    @property
    def state(self) -> StateStore:
        return self._state

    # -- Entry points --

    async def handle(
        self,
        screen: Screen,
        request: Request,
        route: RouteMatch,
        arguments: Mapping[str, Any] | Sequence[Any] | None = None,
    ) -> Any:
        """Serve *request*; *arguments* default to the matched path parameters."""
        token = screen_var.set(screen)
        try:
            self.authorize(screen, request)
            args = _keyed(route.arguments_by_name if arguments is None else arguments)
            if request.method in ("GET", "HEAD"):
                return await self._get(screen, request, route, args)
            return await self._call(screen, request, route, args)
        finally:
            screen_var.reset(token)

    def authorize(self, screen: Screen, request: Request) -> None:
        """Raise ``Forbidden`` unless the current principal may use *screen*."""
        permissions = screen.permissions()
        user = self._principal()
        if check_access(permissions, user):
            return
        logger.warning(
            "Access to %s denied for user %r",
            type(screen).__qualname__,
            getattr(user, "id", None),
        )
        emit_security_event(
            "screen.access.denied",
            request=request,
            user_id=self._principal_id() or None,
            details={"screen": type(screen).__qualname__, "required": list(permissions)},
        )
        raise Forbidden()

    async def view(
        self,
        screen: Screen,
        request: Request,
        route: RouteMatch | None,
        arguments: Mapping[Any, Any],
    ) -> Response:
        """Render the full page: query, persist state, compose layouts."""
        url = _route_url(route, arguments) if route is not None else request.path
        result = await self.call_method(screen, "query", list(arguments.values()), route)

        repository = as_repository(result)
        key = self._state.fill(screen, self._principal_id(), repository)

        html = render_template(
            self._env,
            self._config.base_template,
            {
                "name": screen.name,
                "description": screen.description,
                "command_bar": self.build_command_bar(screen, url),
                "layouts": build_layouts(self.layouts(screen), repository, self._env),
                "key": key,
                "state_field": self._config.state_field,
                "url": url,
                "form_validate_message": screen.form_validate_message(),
            },
        )
        return Response(body=html)

    async def async_build(
        self,
        screen: Screen,
        request: Request,
        method: str,
        slug: str,
        route: RouteMatch | None = None,
    ) -> Response:
        """Re-render only the fragment *slug* from *method*'s result.

        Entities bound from the inputs are written back into *route*,
        which defaults to the request's current match.
        """
        if route is None:
            route = current_route()
        token = screen_var.set(screen)
        try:
            if method != "query" and method not in screen.available_methods():
                raise NotFound(f"Async method: {method} not found")

            inputs = await request.all()
            result = await self.call_method(screen, method, list(inputs.values()), route)
            repository = as_repository(result)

            for layout in self.layouts(screen):
                fragment = layout.find_by_slug(slug)
                if fragment is not None:
                    return Response(body=fragment.current_async().build(repository, self._env))
            raise NotFound(f"Async template: {slug} not found")
        finally:
            screen_var.reset(token)

    # -- Internals --

    async def _get(
        self,
        screen: Screen,
        request: Request,
        route: RouteMatch,
        arguments: dict[Any, Any],
    ) -> Response | Redirect:
        expected = max(len(route.route.variables) - ROUTE_SELECTOR_SLOTS, 0)
        real = len(arguments)
        if real <= expected:
            return await self.view(screen, request, route, arguments)

        last = list(arguments)[-1]
        url = _route_url(route, {k: v for k, v in arguments.items() if k != last})
        logger.debug("GET with %d argument(s), expected %d; redirecting to %s", real, expected, url)
        return Redirect(url)

    async def _call(
        self,
        screen: Screen,
        request: Request,
        route: RouteMatch,
        arguments: dict[Any, Any],
    ) -> Any:
        values = list(arguments.values())
        method = route.parameter(METHOD_PARAMETER, values[-1] if values else None)
        if not isinstance(method, str) or method not in screen.available_methods():
            raise NotFound(f"Method: {method} not found")

        positional = {
            key: value
            for key, value in arguments.items()
            if value and not (isinstance(value, str) and value == method)
        }
        raw = merge_arguments(request.query.to_dict(), positional)

        token = await request.input(self._config.state_field)
        self._state.fill_session(screen, token)

        logger.debug("Calling %s.%s", type(screen).__qualname__, method)
        response = await self.call_method(screen, method, raw, route)
        return response if response is not None else Redirect.back(request)

    async def call_method(
        self,
        screen: Screen,
        method: str,
        raw: Sequence[Any],
        route: RouteMatch | None = None,
    ) -> Any:
        """Bind *raw* onto ``screen.<method>`` and call it."""
        handler = getattr(screen, method, None)
        if handler is None or not callable(handler):
            raise NotFound(f"Method: {method} not found")
        bound = await self._binder.bind(handler, raw, route)
        return await invoke(handler, *bound)

    def layouts(self, screen: Screen) -> tuple[Layout, ...]:
        """Resolved top-level layouts of *screen*."""
        return screen.resolved_layouts(self._binder.container)

    def build_command_bar(self, screen: Screen, url: str) -> Markup:
        return Markup(render_template(
            self._env,
            "perch/command_bar.html",
            {"commands": visible_commands(screen.command_bar()), "url": url.rstrip("/")},
        ))
