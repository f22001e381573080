"""Screen: the unit an admin panel is built from.

A screen declares, on the class:

- ``name`` / ``description``: header text.
- ``permission``: one identifier or several (any one grants access).
- ``state``: the exposed-state schema, field name -> default. Only these
  fields are filled from the query result and carried between requests.

and implements:

- ``query()``: loads the data the layouts render (a mapping).
- ``layout()``: the layout descriptor tree.
- ``command_bar()``: buttons shown in the header.
- any number of public handler methods, called by name on POST.

Usage::

    class UserEditScreen(Screen):
        name = "Edit user"
        permission = "platform.systems.users"
        state = {"user": None}

        def query(self, user: User) -> dict:
            return {"user": user}

        def command_bar(self):
            return [Action("Save", "save")]

        def layout(self):
            return [View("<input name='name' value='{{ user.name }}'>")]

        def save(self, user: User, name: str):
            user.rename(name)
"""

from __future__ import annotations

import copy
import inspect
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from perch.errors import ConfigurationError
from perch.screen.layout import Action, Layout, LayoutNode, Link, resolve_layouts

if TYPE_CHECKING:
    from perch.container import Container


class Screen(ABC):
    """Base class for screens. One instance per request."""

    name: ClassVar[str | None] = None
    description: ClassVar[str | None] = None
    permission: ClassVar[str | Iterable[str] | None] = None
    state: ClassVar[Mapping[str, Any]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for field_name in cls.state:
            if not field_name.isidentifier() or field_name.startswith("_"):
                msg = f"{cls.__qualname__}.state field {field_name!r} must be a public identifier."
                raise ConfigurationError(msg)
            if callable(getattr(cls, field_name, None)):
                msg = f"{cls.__qualname__}.state field {field_name!r} shadows a method."
                raise ConfigurationError(msg)

    def __init__(self) -> None:
        self._resolved_layouts: tuple[Layout, ...] | None = None
        for field_name, default in self.state.items():
            setattr(self, field_name, copy.deepcopy(default))

    # -- Declarations --

    def permissions(self) -> tuple[str, ...]:
        """The permission requirement as a tuple (empty means public)."""
        if self.permission is None:
            return ()
        if isinstance(self.permission, str):
            return (self.permission,)
        return tuple(self.permission)

    def query(self) -> Mapping[str, Any]:
        return {}

    def command_bar(self) -> Sequence[Action | Link]:
        return []

    @abstractmethod
    def layout(self) -> Sequence[LayoutNode | type]: ...

    def form_validate_message(self) -> str:
        return "Please check the entered data, it may be necessary to specify in other languages."

    # -- Introspection --

    @classmethod
    def exposed_fields(cls) -> frozenset[str]:
        return frozenset(cls.state)

    @classmethod
    def available_methods(cls) -> frozenset[str]:
        """Public methods a request may call by name.

        Everything defined on subclasses except ``query`` and the
        ``Screen`` API itself.
        """
        base = set(dir(Screen))
        return frozenset(
            attr
            for attr in dir(cls)
            if not attr.startswith("_")
            and attr not in base
            and attr != "query"
            and inspect.isfunction(inspect.getattr_static(cls, attr))
        )

    def resolved_layouts(self, container: Container) -> tuple[Layout, ...]:
        """The layout tree with deferred references built, memoized."""
        resolved = getattr(self, "_resolved_layouts", None)
        if resolved is None:
            resolved = resolve_layouts(self.layout(), container)
            self._resolved_layouts = resolved
        return resolved

    def snapshot(self) -> dict[str, Any]:
        """Current values of the exposed fields."""
        return {field_name: getattr(self, field_name) for field_name in self.state}
