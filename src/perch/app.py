"""Perch application class.

Mutable during setup (screens, routes, providers, middleware).
Frozen at runtime when ``__call__()`` is first invoked.
"""

import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from kida import Environment

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.types import Endpoint, ErrorHandler, Factory
from perch.cache import Cache, MemoryCache
from perch.config import AppConfig
from perch.container import Container
from perch.errors import ConfigurationError, NotFound
from perch.http.request import Request
from perch.middleware.auth import current_user
from perch.middleware.protocol import Middleware, Next
from perch.middleware.sessions import SessionConfig, SessionMiddleware
from perch.routing.route import Route, RouteMatch
from perch.routing.router import Router
from perch.screen.binder import ArgumentBinder
from perch.screen.dispatcher import ScreenDispatcher
from perch.screen.screen import Screen
from perch.screen.state import StateStore
from perch.server.handler import build_pipeline, handle_request
from perch.templating.integration import create_environment

logger = logging.getLogger("perch.app")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def default_screen_name(screen: type[Screen]) -> str:
    """``UserEditScreen`` -> ``"user-edit"``."""
    name = screen.__name__.removesuffix("Screen") or screen.__name__
    return _CAMEL_BOUNDARY.sub("-", name).lower()


@dataclass(slots=True)
class _PendingRoute:
    """A route waiting to be compiled."""

    path: str
    endpoint: Endpoint
    methods: tuple[str, ...]
    name: str | None
    screen: type[Screen] | None = None


class App:
    """The perch application.

    Usage::

        app = App(AppConfig(secret_key="..."))
        app.screen("/users/{user}/edit", UserEditScreen)
        app.provide(UserRepository, lambda: UserRepository(db))

    Thread safety:
        Setup is single-threaded (import time). The freeze transition
        uses a Lock + double-check so exactly one thread compiles the app.
    """

    __slots__ = (
        "_cache",
        "_container",
        "_custom_kida_env",
        "_dispatcher",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_kida_env",
        "_middleware_list",
        "_pending_routes",
        "_pipeline",
        "_router",
        "_screens",
        "_template_globals",
        "config",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        cache: Cache | None = None,
        kida_env: Environment | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._cache: Cache = cache if cache is not None else MemoryCache()
        self._container = Container()
        self._custom_kida_env = kida_env
        self._pending_routes: list[_PendingRoute] = []
        self._screens: dict[str, type[Screen]] = {}
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._template_globals: dict[str, Any] = {"current_user": current_user}
        self._frozen = False
        self._freeze_lock = threading.Lock()

        # Compiled state: set during _freeze()
        self._router: Router | None = None
        self._kida_env: Environment | None = None
        self._dispatcher: ScreenDispatcher | None = None
        self._pipeline: Next | None = None

    # -- Registration --

    def screen(self, path: str, screen: type[Screen], *, name: str | None = None) -> None:
        """Mount *screen* at *path*.

        Registers ``{path}/{method?}`` for GET and POST and makes the
        screen reachable from the fragment endpoint under *name*.
        """
        self._check_not_frozen()
        if not (isinstance(screen, type) and issubclass(screen, Screen)):
            msg = f"{screen!r} is not a Screen subclass."
            raise ConfigurationError(msg)
        name = name or default_screen_name(screen)
        if name in self._screens:
            msg = f"Screen name {name!r} is already registered."
            raise ConfigurationError(msg)
        self._screens[name] = screen

        async def endpoint(request: Request, match: RouteMatch) -> Any:
            return await self.dispatcher.handle(self._make_screen(screen), request, match)

        full_path = f"{path.rstrip('/')}/{{method?}}"
        self._pending_routes.append(_PendingRoute(full_path, endpoint, ("GET", "POST"), name, screen))

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Endpoint], Endpoint]:
        """Register a plain endpoint, called as ``endpoint(request, match)``."""

        def decorator(func: Endpoint) -> Endpoint:
            self._check_not_frozen()
            verbs = tuple(m.upper() for m in (methods or ["GET"]))
            self._pending_routes.append(_PendingRoute(path, func, verbs, name))
            return func

        return decorator

    def provide(self, annotation: type, factory: Factory) -> None:
        """Register a factory the container uses for *annotation*.

        Applies to screen constructors, handler parameters and
        deferred layouts alike.
        """
        self._check_not_frozen()
        self._container.provide(annotation, factory)

    def error(self, code_or_exception: int | type) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler for a status code or exception type."""

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    def add_middleware(self, middleware: Middleware) -> None:
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    def template_global(self, name: str, value: Any) -> None:
        self._check_not_frozen()
        self._template_globals[name] = value

    # -- Runtime accessors --

    @property
    def dispatcher(self) -> ScreenDispatcher:
        self._ensure_frozen()
        assert self._dispatcher is not None
        return self._dispatcher

    @property
    def router(self) -> Router:
        self._ensure_frozen()
        assert self._router is not None
        return self._router

    def url_for(self, name: str, *args: Any, **params: Any) -> str:
        """Build the URL of the route (or screen) registered as *name*."""
        return self.router.named(name).url(*args, **params)

    def _make_screen(self, screen: type[Screen]) -> Screen:
        return self._container.resolve(screen)

    async def _async_endpoint(self, request: Request, match: RouteMatch) -> Any:
        screen = self._screens.get(str(match.parameter("screen")))
        if screen is None:
            raise NotFound(f"Screen: {match.parameter('screen')} not found")
        instance = self._make_screen(screen)
        self.dispatcher.authorize(instance, request)
        return await self.dispatcher.async_build(
            instance,
            request,
            str(match.parameter("method")),
            str(match.parameter("slug")),
            match,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()
        assert self._pipeline is not None
        await handle_request(
            scope,
            receive,
            send,
            pipeline=self._pipeline,
            error_handlers=self._error_handlers,
            debug=self.config.debug,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    self._ensure_frozen()
                except ConfigurationError as exc:
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        router = Router()
        for pending in self._pending_routes:
            router.add(
                Route(
                    path=pending.path,
                    endpoint=pending.endpoint,
                    methods=frozenset(pending.methods),
                    name=pending.name,
                    screen=pending.screen,
                )
            )
        if self._screens:
            prefix = self.config.async_prefix.rstrip("/")
            router.add(
                Route(
                    path=f"{prefix}/{{screen:slug}}/{{method}}/{{slug}}",
                    endpoint=self._async_endpoint,
                    methods=frozenset({"GET", "POST"}),
                    name="perch.async",
                )
            )
        router.compile()

        self._apply_log_level()
        env = self._custom_kida_env or create_environment(self.config, self._template_globals)
        state = StateStore(
            self._cache,
            ttl=self.config.state_ttl,
            prefix=self.config.state_key_prefix,
        )
        self._dispatcher = ScreenDispatcher(
            binder=ArgumentBinder(self._container),
            state=state,
            env=env,
            config=self.config,
        )
        self._router = router
        self._kida_env = env
        self._pipeline = build_pipeline(router, self._middleware_chain())
        self._frozen = True
        logger.debug("App frozen with %d route(s), %d screen(s)", len(router.routes), len(self._screens))

    def _middleware_chain(self) -> tuple[Middleware, ...]:
        chain = tuple(self._middleware_list)
        if self.config.secret_key and not any(isinstance(mw, SessionMiddleware) for mw in chain):
            chain = (SessionMiddleware(SessionConfig(secret_key=self.config.secret_key)), *chain)
        return chain

    def _apply_log_level(self) -> None:
        if self.config.log_level is None:
            return
        try:
            logging.getLogger("perch").setLevel(self.config.log_level.upper())
        except ValueError as exc:
            msg = f"Invalid AppConfig.log_level {self.config.log_level!r}."
            raise ConfigurationError(msg) from exc

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = "Cannot modify the app after it has started handling requests."
            raise RuntimeError(msg)
