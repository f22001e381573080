"""End-to-end tests: screens mounted on an App, driven through TestClient."""

import re
from dataclasses import dataclass, field
from typing import Any

import pytest

from perch import App, AppConfig, Redirect
from perch.middleware.auth import AuthConfig, AuthMiddleware, login
from perch.middleware.sessions import SessionConfig, SessionMiddleware
from perch.screen import Action, Link, Rows, Screen, View
from perch.security.audit import SecurityEvent, set_security_event_sink
from perch.testing import TestClient

KEY_RE = re.compile(r'name="_screen" value="([^"]+)"')


@dataclass
class User:
    id: int = 0
    name: str = ""

    def resolve_route_binding(self, value: Any) -> "User | None":
        return USERS.get(int(value))

    def route_key(self) -> int:
        return self.id


USERS = {1: User(1, "Ada"), 2: User(2, "Grace")}


@dataclass(frozen=True)
class Principal:
    id: str
    is_authenticated: bool = True
    permissions: frozenset[str] = field(default_factory=frozenset)


PRINCIPALS = {
    "admin": Principal("admin", permissions=frozenset({"platform.users"})),
    "viewer": Principal("viewer", permissions=frozenset({"platform.reports"})),
}


class NeedsDsn:
    def __init__(self, dsn: str) -> None:
        self.dsn = dsn


class ProfileScreen(Screen):
    name = "Profile"
    description = "Your account"
    state = {"name": ""}

    def __init__(self, log: list[Any]) -> None:
        super().__init__()
        self.log = log

    def query(self) -> dict[str, Any]:
        return {"name": "Ada", "users": ["ada", "grace"]}

    def command_bar(self):
        return [Action("Save", "save"), Link("Help", "/help"), Action("Hidden", "x", visible=False)]

    def layout(self):
        return [
            View("<p class='greeting'>{{ name }}</p>"),
            Rows(
                View("<em>before</em>"),
                View("{% for u in users %}<li>{{ u }}</li>{% end %}", slug="users-table"),
            ),
        ]

    def save(self, name: str) -> None:
        self.log.append(("save", name))

    def remember(self) -> None:
        self.log.append(("remember", self.name))

    def rename(self) -> Redirect:
        return Redirect("/done")

    def stats(self) -> dict[str, int]:
        return {"count": 2}

    def reload(self, prefix: str = "") -> dict[str, Any]:
        return {"users": [f"{prefix}carol"]}

    def broken(self, conn: NeedsDsn) -> None: ...


class UserEditScreen(Screen):
    name = "Edit user"
    permission = "platform.users"

    def __init__(self, log: list[Any]) -> None:
        super().__init__()
        self.log = log

    def query(self, user: User) -> dict[str, Any]:
        return {"user": user}

    def layout(self):
        return [View("<h2>{{ user.name }}</h2>")]

    def save(self, user: User) -> None:
        self.log.append(("save-user", user))


class UserListScreen(Screen):
    name = "Users"

    def query(self) -> dict[str, Any]:
        return {"users": [u.name for u in USERS.values()]}

    def layout(self):
        return [View("{% for u in users %}<li>{{ u }}</li>{% end %}")]

    def remove(self) -> str:
        return "removed"


@pytest.fixture
def log() -> list[Any]:
    return []


@pytest.fixture
def app(log: list[Any]) -> App:
    app = App(AppConfig(secret_key="test-secret"))
    app.add_middleware(SessionMiddleware(SessionConfig(secret_key="test-secret")))
    app.add_middleware(AuthMiddleware(AuthConfig(load_user=PRINCIPALS.get)))
    app.provide(ProfileScreen, lambda: ProfileScreen(log))
    app.provide(UserEditScreen, lambda: UserEditScreen(log))
    app.screen("/profile", ProfileScreen)
    app.screen("/users/{user}", UserEditScreen)

    @app.route("/login/{who}")
    def do_login(request, match):
        login(PRINCIPALS[match.parameter("who")])
        return "ok"

    return app


class TestFullPage:
    async def test_renders_base_page(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/profile")
        assert response.status == 200
        assert "<h1>Profile</h1>" in response.text
        assert "Your account" in response.text
        assert "<p class='greeting'>Ada</p>" in response.text
        assert '<div id="users-table" data-async="users-table">' in response.text
        assert 'action="/profile"' in response.text

    async def test_command_bar(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/profile")
        assert 'formaction="/profile/save"' in response.text
        assert 'href="/help"' in response.text
        assert "Hidden" not in response.text

    async def test_embeds_state_key(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/profile")
        match = KEY_RE.search(response.text)
        assert match is not None
        assert match.group(1).startswith("screen--")

    async def test_state_key_scoped_to_principal(self, app: App) -> None:
        async with TestClient(app) as client:
            await client.get("/login/admin")
            response = await client.get("/profile")
        assert KEY_RE.search(response.text).group(1).startswith("screen-admin-")

    async def test_extra_argument_redirects(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/profile/extra")
        assert response.status == 302
        assert response.header("location") == "/profile"

    async def test_head(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.request("HEAD", "/profile")
        assert response.status == 200
        assert response.body == b""


class TestHandlerCalls:
    async def test_query_arguments_bound(self, app: App, log: list[Any]) -> None:
        async with TestClient(app) as client:
            response = await client.post("/profile/save?name=Ada", headers={"referer": "/profile"})
        assert log == [("save", "Ada")]
        assert response.status == 302
        assert response.header("location") == "/profile"

    async def test_none_result_without_referer_goes_home(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.post("/profile/save")
        assert response.header("location") == "/"

    async def test_redirect_result(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.post("/profile/rename")
        assert response.status == 302
        assert response.header("location") == "/done"

    async def test_dict_result_is_json(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.post("/profile/stats")
        assert response.status == 200
        assert response.content_type == "application/json"
        assert response.text == '{"count": 2}'

    @pytest.mark.parametrize("method", ["query", "missing", "layout", "_private"])
    async def test_unavailable_method_is_404(self, app: App, method: str) -> None:
        async with TestClient(app) as client:
            response = await client.post(f"/profile/{method}")
        assert response.status == 404

    async def test_unbuildable_parameter_is_500(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.post("/profile/broken")
        assert response.status == 500
        assert response.text == "Internal Server Error"


class TestStateCarryOver:
    async def test_state_restored_once(self, app: App, log: list[Any]) -> None:
        async with TestClient(app) as client:
            page = await client.get("/profile")
            key = KEY_RE.search(page.text).group(1)
            await client.post("/profile/remember", form={"_screen": key})
            await client.post("/profile/remember", form={"_screen": key})
        assert log == [("remember", "Ada"), ("remember", "")]

    async def test_unknown_key_keeps_defaults(self, app: App, log: list[Any]) -> None:
        async with TestClient(app) as client:
            await client.post("/profile/remember", form={"_screen": "screen--nope"})
        assert log == [("remember", "")]


class TestAsyncFragments:
    async def test_returns_only_fragment(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/_async/profile/reload/users-table")
        assert response.status == 200
        assert response.text == "<li>carol</li>"

    async def test_inputs_bound_from_query(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.post("/_async/profile/reload/users-table?prefix=dr-")
        assert response.text == "<li>dr-carol</li>"

    async def test_query_method_allowed(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/_async/profile/query/users-table")
        assert response.text == "<li>ada</li><li>grace</li>"

    async def test_missing_method(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/_async/profile/missingMethod/users-table")
        assert response.status == 404
        assert "Async method: missingMethod not found" in response.text

    async def test_missing_slug(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/_async/profile/reload/nope")
        assert response.status == 404

    async def test_unknown_screen(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/_async/nobody/reload/users-table")
        assert response.status == 404

    async def test_fragment_requires_access(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/_async/user-edit/query/anything")
        assert response.status == 403


class TestPermissionsAndRouteBinding:
    async def test_anonymous_forbidden(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/users/1")
        assert response.status == 403

    async def test_wrong_permission_forbidden_and_audited(self, app: App) -> None:
        events: list[SecurityEvent] = []
        set_security_event_sink(events.append)
        async with TestClient(app) as client:
            await client.get("/login/viewer")
            response = await client.get("/users/1")
        assert response.status == 403
        denied = [e for e in events if e.name == "screen.access.denied"]
        assert len(denied) == 1
        assert denied[0].user_id == "viewer"
        assert denied[0].details["required"] == ["platform.users"]

    async def test_entity_bound_from_route(self, app: App) -> None:
        async with TestClient(app) as client:
            await client.get("/login/admin")
            response = await client.get("/users/2")
        assert response.status == 200
        assert "<h2>Grace</h2>" in response.text
        assert 'action="/users/2"' in response.text

    async def test_missing_entity_is_404(self, app: App) -> None:
        async with TestClient(app) as client:
            await client.get("/login/admin")
            response = await client.get("/users/99")
        assert response.status == 404
        assert "No query results for User [99]" in response.text

    async def test_post_binds_entity(self, app: App, log: list[Any]) -> None:
        async with TestClient(app) as client:
            await client.get("/login/admin")
            await client.post("/users/1/save")
        assert log == [("save-user", USERS[1])]

    async def test_extra_argument_redirects_to_canonical(self, app: App) -> None:
        async with TestClient(app) as client:
            await client.get("/login/admin")
            response = await client.get("/users/1/extra")
        assert response.status == 302
        assert response.header("location") == "/users/1"


class TestListAndEditScreens:
    @pytest.fixture
    def users_app(self, log: list[Any]) -> App:
        app = App()
        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="test-secret")))
        app.add_middleware(AuthMiddleware(AuthConfig(load_user=PRINCIPALS.get)))
        app.provide(UserEditScreen, lambda: UserEditScreen(log))
        app.screen("/users", UserListScreen)
        app.screen("/users/{user}", UserEditScreen)

        @app.route("/login/{who}")
        def do_login(request, match):
            login(PRINCIPALS[match.parameter("who")])
            return "ok"

        return app

    async def test_list_handler_reachable(self, users_app: App) -> None:
        async with TestClient(users_app) as client:
            response = await client.post("/users/remove")
        assert response.status == 200
        assert response.text == "removed"

    async def test_list_page(self, users_app: App) -> None:
        async with TestClient(users_app) as client:
            response = await client.get("/users")
        assert "<li>Ada</li><li>Grace</li>" in response.text

    async def test_edit_handler_reachable(self, users_app: App, log: list[Any]) -> None:
        async with TestClient(users_app) as client:
            await client.get("/login/admin")
            await client.post("/users/2/save")
        assert log == [("save-user", USERS[2])]


class TestErrorHandlers:
    async def test_custom_404(self, app: App) -> None:
        @app.error(404)
        def not_found(request, exc):
            return f"nothing at {request.path}"

        async with TestClient(app) as client:
            response = await client.get("/nowhere")
        assert response.status == 404
        assert response.text == "nothing at /nowhere"

    async def test_fragment_error_markup(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get("/users/1", headers={"HX-Request": "true"})
        assert response.status == 403
        assert 'class="perch-error" data-status="403"' in response.text


class TestAppSetup:
    def test_url_for(self, app: App) -> None:
        assert app.url_for("profile") == "/profile"
        assert app.url_for("user-edit", USERS[1]) == "/users/1"
        assert app.url_for("user-edit", 2, "save") == "/users/2/save"

    def test_custom_screen_name(self) -> None:
        app = App()
        app.screen("/me", ProfileScreen, name="me")
        assert app.url_for("me") == "/me"

    def test_rejects_non_screen(self) -> None:
        from perch.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match="not a Screen subclass"):
            App().screen("/x", dict)  # type: ignore[arg-type]

    def test_rejects_duplicate_name(self, app: App) -> None:
        from perch.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match="already registered"):
            app.screen("/other", ProfileScreen)

    async def test_frozen_after_first_request(self, app: App) -> None:
        async with TestClient(app) as client:
            await client.get("/profile")
        with pytest.raises(RuntimeError, match="Cannot modify"):
            app.screen("/late", UserEditScreen, name="late")

    async def test_lifespan(self, app: App) -> None:
        messages = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            return messages.pop(0)

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert [m["type"] for m in sent] == [
            "lifespan.startup.complete",
            "lifespan.shutdown.complete",
        ]
