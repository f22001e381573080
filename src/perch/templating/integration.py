"""Kida environment setup.

Creates a kida Environment from perch's AppConfig. The environment is
created once during ``App._freeze()`` and shared by the dispatcher and
every layout for the lifetime of the app.
"""

from collections.abc import Mapping
from typing import Any

from kida import ChoiceLoader, DictLoader, Environment, FileSystemLoader

from perch.config import AppConfig
from perch.templating.templates import BUILTIN_TEMPLATES


def create_environment(
    config: AppConfig,
    globals_: Mapping[str, Any] | None = None,
) -> Environment:
    """Create a kida Environment from app configuration.

    User templates in ``config.template_dir`` shadow the built-ins.
    """
    loaders: list[Any] = []
    if config.template_dir is not None:
        loaders.append(FileSystemLoader(str(config.template_dir)))
    loaders.append(DictLoader(BUILTIN_TEMPLATES))

    env = Environment(
        loader=ChoiceLoader(loaders),
        autoescape=config.autoescape,
        auto_reload=config.debug,
        trim_blocks=config.trim_blocks,
        lstrip_blocks=config.lstrip_blocks,
    )
    for name, value in (globals_ or {}).items():
        env.add_global(name, value)
    return env


def render_template(env: Environment, name: str, context: Mapping[str, Any]) -> str:
    """Render a named template to string."""
    return env.get_template(name).render(dict(context))


def render_source(env: Environment, source: str, context: Mapping[str, Any]) -> str:
    """Render an inline template source to string."""
    return env.from_string(source).render(dict(context))
