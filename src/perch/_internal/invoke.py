"""Invoke helpers: call sync or async callables uniformly.

Screen handlers, error handlers, and auth callbacks can be ``def`` or
``async def``. Any code that calls a user-provided callable goes through
this helper so the sync/async check lives in exactly one place.

Usage::

    from perch._internal.invoke import invoke

    result = await invoke(handler, *args, **kwargs)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's a coroutine.

    Works with both sync and async callables::

        # sync: returns immediately, no await needed
        def save(self, name: str):
            self.repo.save(name)

        # async: returns coroutine, awaited automatically
        async def save(self, name: str):
            await self.repo.save(name)
    """
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
