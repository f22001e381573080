"""Screens: permission-guarded, stateful request handlers with layouts."""

from perch.screen.access import check_access
from perch.screen.binder import ArgumentBinder
from perch.screen.dispatcher import ScreenDispatcher, merge_arguments
from perch.screen.layout import Action, Layout, LayoutRef, Link, Rows, View, resolve_layouts
from perch.screen.params import ParamSpec, RouteBindable, describe
from perch.screen.repository import Repository
from perch.screen.screen import Screen
from perch.screen.state import StateStore

__all__ = [
    "Action",
    "ArgumentBinder",
    "Layout",
    "LayoutRef",
    "Link",
    "ParamSpec",
    "Repository",
    "RouteBindable",
    "Rows",
    "Screen",
    "ScreenDispatcher",
    "StateStore",
    "View",
    "check_access",
    "describe",
    "merge_arguments",
    "resolve_layouts",
]
