"""Tests for the screen access guard."""

from dataclasses import dataclass, field

from perch.middleware.auth import AnonymousUser
from perch.screen.access import check_access


@dataclass(frozen=True)
class _User:
    id: str = "1"
    is_authenticated: bool = True
    permissions: frozenset[str] = field(default_factory=frozenset)


class _RoleUser:
    """Model with its own access check (e.g. role hierarchy)."""

    id = "2"
    is_authenticated = True

    def has_access(self, permission: str) -> bool:
        return permission.startswith("platform.")


class TestEmptyRequirement:
    def test_none_grants(self) -> None:
        assert check_access(None, None) is True

    def test_empty_grants_anonymous(self) -> None:
        assert check_access((), AnonymousUser()) is True


class TestOrSemantics:
    def test_bare_string_is_one_identifier(self) -> None:
        user = _User(permissions=frozenset({"p"}))
        assert check_access("platform.index", user) is False
        assert check_access("p", user) is True

    def test_single_match(self) -> None:
        user = _User(permissions=frozenset({"a"}))
        assert check_access(("a",), user) is True

    def test_any_one_of_many(self) -> None:
        user = _User(permissions=frozenset({"b"}))
        assert check_access(("a", "b", "c"), user) is True

    def test_none_held(self) -> None:
        user = _User(permissions=frozenset({"x"}))
        assert check_access(("a", "b"), user) is False

    def test_model_has_access_method(self) -> None:
        assert check_access(("platform.users",), _RoleUser()) is True
        assert check_access(("other",), _RoleUser()) is False


class TestUnauthenticated:
    def test_anonymous_denied(self) -> None:
        assert check_access(("a",), AnonymousUser()) is False

    def test_none_user_denied(self) -> None:
        assert check_access(("a",), None) is False

    def test_unauthenticated_user_with_permissions_denied(self) -> None:
        user = _User(is_authenticated=False, permissions=frozenset({"a"}))
        assert check_access(("a",), user) is False

    def test_object_without_permission_check(self) -> None:
        class Bare:
            is_authenticated = True

        assert check_access(("a",), Bare()) is False
