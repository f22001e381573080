"""Perch: admin-panel screens served over ASGI.

A screen declares a permission, exposed state, a query, a layout tree and
handler methods. Perch authorizes the caller, binds request arguments
(including route-bound entities) onto handler parameters, carries the
exposed state between the page and its next submission, and renders
either the full page or one refreshed fragment.

Basic usage::

    from perch import App, AppConfig, Screen, View

    class Dashboard(Screen):
        name = "Dashboard"

        def query(self):
            return {"greeting": "Hello"}

        def layout(self):
            return [View("<p>{{ greeting }}</p>")]

    app = App(AppConfig(secret_key="..."))
    app.screen("/dashboard", Dashboard)
"""

__version__ = "0.1.0"
__all__ = [
    "Action",
    "App",
    "AppConfig",
    "BindingFailure",
    "ConfigurationError",
    "EntityNotFound",
    "Forbidden",
    "HTTPError",
    "Layout",
    "LayoutRef",
    "Link",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "PerchError",
    "Redirect",
    "Repository",
    "Request",
    "Response",
    "Rows",
    "Screen",
    "View",
    "current_route",
    "current_screen",
    "get_request",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from perch.http import response as _resp

        return getattr(_resp, name)

    if name in ("Action", "Layout", "LayoutRef", "Link", "Repository", "Rows", "Screen", "View"):
        from perch import screen as _screen

        return getattr(_screen, name)

    if name in ("Middleware", "Next"):
        from perch.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("current_route", "current_screen", "get_request"):
        from perch import context as _ctx

        return getattr(_ctx, name)

    if name in (
        "BindingFailure",
        "ConfigurationError",
        "EntityNotFound",
        "Forbidden",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "PerchError",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
