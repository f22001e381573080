"""Tests for the Screen base class."""

import pytest

from perch.config import AppConfig
from perch.container import Container
from perch.errors import ConfigurationError
from perch.screen.layout import Action, View
from perch.screen.screen import Screen


class Sidebar(View):
    def __init__(self) -> None:
        super().__init__(source="<aside></aside>")


class UserListScreen(Screen):
    name = "Users"
    description = "All registered users"
    permission = ("platform.users", "platform.admin")
    state = {"filters": {}, "page": 1}

    def query(self, page: int = 1):
        return {"page": page}

    def command_bar(self):
        return [Action("Export", "export")]

    def layout(self):
        return [Sidebar]

    def export(self): ...

    async def remove(self, user_id: str): ...

    def _helper(self): ...

    @staticmethod
    def format_name(value: str) -> str:
        return value.title()


class TestDeclarations:
    def test_permissions_tuple(self) -> None:
        assert UserListScreen().permissions() == ("platform.users", "platform.admin")

    def test_single_permission(self) -> None:
        class One(Screen):
            permission = "platform.users"

            def layout(self):
                return []

        assert One().permissions() == ("platform.users",)

    def test_no_permission(self) -> None:
        class Open(Screen):
            def layout(self):
                return []

        assert Open().permissions() == ()
        assert Open().query() == {}
        assert Open().command_bar() == []

    def test_form_validate_message(self) -> None:
        assert "check the entered data" in UserListScreen().form_validate_message()


class TestState:
    def test_defaults_copied_per_instance(self) -> None:
        a, b = UserListScreen(), UserListScreen()
        a.filters["role"] = "admin"
        assert b.filters == {}
        assert a.page == 1

    def test_exposed_fields(self) -> None:
        assert UserListScreen.exposed_fields() == frozenset({"filters", "page"})

    def test_snapshot(self) -> None:
        screen = UserListScreen()
        screen.page = 4
        assert screen.snapshot() == {"filters": {}, "page": 4}

    def test_private_field_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="public identifier"):

            class Bad(Screen):
                state = {"_secret": 1}

                def layout(self):
                    return []

    def test_field_shadowing_method_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="shadows a method"):

            class Bad(Screen):
                state = {"layout": 1}

                def layout(self):
                    return []


class TestAvailableMethods:
    def test_user_methods_only(self) -> None:
        assert UserListScreen.available_methods() == frozenset({"export", "remove"})

    def test_query_and_base_api_excluded(self) -> None:
        methods = UserListScreen.available_methods()
        assert "query" not in methods
        assert "layout" not in methods
        assert "command_bar" not in methods
        assert "available_methods" not in methods

    def test_inherited_user_methods_included(self) -> None:
        class Extended(UserListScreen):
            def archive(self): ...

        assert "export" in Extended.available_methods()
        assert "archive" in Extended.available_methods()


class TestResolvedLayouts:
    def test_memoized(self) -> None:
        screen = UserListScreen()
        container = Container()
        first = screen.resolved_layouts(container)
        assert isinstance(first[0], Sidebar)
        assert screen.resolved_layouts(container) is first


class TestConfig:
    def test_state_ttl_in_seconds(self) -> None:
        assert AppConfig().state_ttl == 7200
        assert AppConfig(session_lifetime=30).state_ttl == 1800
