"""Layout descriptors: the tree a screen renders its data through.

A screen's ``layout()`` returns a sequence of nodes, each either a
materialized ``Layout`` or a ``LayoutRef`` naming a class to build on
first use. ``resolve_layouts`` materializes a tree once; the dispatcher
memoizes the result per screen instance.

Layouts with a ``slug`` are async fragments: the full page wraps them in
a target element, and ``find_by_slug`` + ``current_async`` let the
fragment endpoint re-render just that piece.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from kida import Environment
from kida.template import Markup

from perch.screen.repository import Repository
from perch.templating.integration import render_source, render_template

if TYPE_CHECKING:
    from perch.container import Container


class Layout:
    """Base class for layout nodes."""

    slug: str | None = None

    @property
    def children(self) -> tuple[LayoutNode, ...]:
        return ()

    def with_children(self, children: tuple[Layout, ...]) -> Layout:  # noqa: ARG002
        return self

    def build(self, repository: Repository, env: Environment) -> Markup:
        raise NotImplementedError

    def current_async(self) -> Layout:
        """The representation re-rendered on fragment refresh."""
        return self

    def find_by_slug(self, slug: str) -> Layout | None:
        """Depth-first search for the fragment identified by *slug*."""
        if self.slug == slug:
            return self
        for child in self.children:
            if isinstance(child, Layout):
                found = child.find_by_slug(slug)
                if found is not None:
                    return found
        return None


@dataclass(frozen=True, slots=True)
class LayoutRef:
    """Deferred layout: a class (or provider key) built through the container."""

    target: type

    def resolve(self, container: Container) -> Layout:
        instance = container.resolve(self.target)
        if not isinstance(instance, Layout):
            msg = f"{self.target.__qualname__} did not resolve to a Layout"
            raise TypeError(msg)
        return instance


type LayoutNode = Layout | LayoutRef


def resolve_layouts(nodes: Iterable[LayoutNode | type], container: Container) -> tuple[Layout, ...]:
    """Materialize every deferred reference in *nodes*, recursively."""
    resolved: list[Layout] = []
    for node in nodes:
        if isinstance(node, type):
            node = LayoutRef(node)
        layout = node.resolve(container) if isinstance(node, LayoutRef) else node
        if layout.children:
            layout = layout.with_children(resolve_layouts(layout.children, container))
        resolved.append(layout)
    return tuple(resolved)


@dataclass(frozen=True)
class View(Layout):
    """A kida template rendered against the repository.

    ``source`` is inline template text; ``template`` names a file
    template instead. The template sees every repository key plus
    ``repository`` itself. ``async_source`` (optional) replaces the
    template when the fragment is refreshed on its own.
    """

    source: str | None = None
    template: str | None = None
    slug: str | None = None
    async_source: str | None = None

    def __post_init__(self) -> None:
        if (self.source is None) == (self.template is None):
            msg = "View needs exactly one of 'source' or 'template'."
            raise ValueError(msg)

    def _render(self, repository: Repository, env: Environment) -> str:
        context = {**repository.to_dict(), "repository": repository}
        if self.template is not None:
            return render_template(env, self.template, context)
        return render_source(env, self.source or "", context)

    def build(self, repository: Repository, env: Environment) -> Markup:
        html = self._render(repository, env)
        if self.slug is None:
            return Markup(html)
        return Markup(f'<div id="{self.slug}" data-async="{self.slug}">{html}</div>')

    def current_async(self) -> Layout:
        if self.async_source is None:
            return _Unwrapped(self)
        return _Unwrapped(replace(self, source=self.async_source, template=None))


@dataclass(frozen=True)
class _Unwrapped(Layout):
    """A slugged view rendered without its target wrapper."""

    view: View
    slug: str | None = None

    def build(self, repository: Repository, env: Environment) -> Markup:
        return Markup(self.view._render(repository, env))


@dataclass(frozen=True)
class Rows(Layout):
    """Render child layouts one after another."""

    items: tuple[LayoutNode, ...] = ()
    slug: str | None = None

    def __init__(self, *items: LayoutNode | type, slug: str | None = None) -> None:
        object.__setattr__(
            self, "items", tuple(LayoutRef(i) if isinstance(i, type) else i for i in items)
        )
        object.__setattr__(self, "slug", slug)

    @property
    def children(self) -> tuple[LayoutNode, ...]:
        return self.items

    def with_children(self, children: tuple[Layout, ...]) -> Layout:
        return Rows(*children, slug=self.slug)

    def build(self, repository: Repository, env: Environment) -> Markup:
        parts: list[str] = []
        for item in self.items:
            if isinstance(item, LayoutRef):
                msg = "Rows contains an unresolved LayoutRef; call resolve_layouts() first."
                raise TypeError(msg)
            parts.append(item.build(repository, env))
        html = "\n".join(parts)
        if self.slug is None:
            return Markup(html)
        return Markup(f'<div id="{self.slug}" data-async="{self.slug}">{html}</div>')

    def current_async(self) -> Layout:
        return Rows(*self.items)


@dataclass(frozen=True, slots=True)
class Action:
    """Command-bar button that posts the screen form to a handler method."""

    label: str
    method: str
    confirm: str | None = None
    visible: bool = True
    kind: str = field(default="button", init=False)


@dataclass(frozen=True, slots=True)
class Link:
    """Command-bar link to another URL."""

    label: str
    href: str
    visible: bool = True
    kind: str = field(default="link", init=False)


def visible_commands(commands: Sequence[Action | Link]) -> list[Action | Link]:
    return [command for command in commands if command.visible]


def build_layouts(layouts: Sequence[Layout], repository: Repository, env: Environment) -> Markup:
    """Render the top-level layout nodes of a screen."""
    return Markup("\n".join(layout.build(repository, env) for layout in layouts))


def as_repository(value: Any) -> Repository:
    return value if isinstance(value, Repository) else Repository(value)
