"""
Lifecycle hooks.

Hooks are normalised once, at registration, into a coroutine function so
execution never has to branch on the form the caller used:
- plain functions ``fn(data)`` (sync or async)
- callback-style functions ``fn(data, done)`` that signal completion by
  calling ``done()`` or ``done(error)``

Invariants:
    - Hooks for one event run strictly sequentially, in registration order
    - A hook that raises aborts the remaining hooks and the calling operation
    - run() returns the data it was given, unchanged by identity
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from collections.abc import Iterable
from typing import Any, Awaitable, Callable

from .errors import DocStoreError, SchemaError

Hook = Callable[..., Awaitable[Any]]

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


def _required_positional(fn: Callable[..., Any]) -> int:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return 1
    return sum(
        1
        for param in signature.parameters.values()
        if param.kind in _POSITIONAL and param.default is param.empty
    )


def _wrap_plain(fn: Callable[..., Any]) -> Hook:
    @functools.wraps(fn)
    async def hook(*args: Any) -> Any:
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    return hook


def _wrap_callback(fn: Callable[..., Any]) -> Hook:
    @functools.wraps(fn)
    async def hook(data: Any, *args: Any) -> None:
        future = asyncio.get_running_loop().create_future()

        def done(error: Any = None) -> None:
            if future.done():
                return
            if error is None:
                future.set_result(None)
            elif isinstance(error, BaseException):
                future.set_exception(error)
            else:
                future.set_exception(DocStoreError(str(error), code="HOOK_ERROR"))

        fn(data, done)
        await future

    return hook


def normalize_hook(fn: Callable[..., Any], detect_callback: bool = True) -> Hook:
    """Convert a hook function into a uniform coroutine function.

    Args:
        fn: Hook function
        detect_callback: Treat synchronous functions with two required
            positional parameters as callback-style ``(data, done)``

    Returns:
        Coroutine function accepting the hook arguments

    Raises:
        SchemaError: If fn is not callable
    """
    if not callable(fn):
        raise SchemaError(f"Hook must be callable, got {type(fn).__name__}")

    if (
        detect_callback
        and not inspect.iscoroutinefunction(fn)
        and _required_positional(fn) >= 2
    ):
        return _wrap_callback(fn)
    return _wrap_plain(fn)


class HookRegistry:
    """Ordered hook lists keyed by event name.

    Args:
        events: Allowed event names, or None to accept any name
        detect_callback: Passed to normalize_hook for every registration
    """

    def __init__(
        self,
        events: Iterable[str] | None = None,
        detect_callback: bool = True,
    ) -> None:
        self._events = tuple(events) if events is not None else None
        self._detect_callback = detect_callback
        self._hooks: dict[str, list[Hook]] = {}
        for event in self._events or ():
            self._hooks[event] = []

    def add(self, event: str, fn: Callable[..., Any]) -> None:
        """Register a hook for an event.

        Raises:
            SchemaError: If event is not allowed or fn is not callable
        """
        if self._events is not None and event not in self._events:
            raise SchemaError(f"Hook type `{event}` is not supported")
        hook = normalize_hook(fn, self._detect_callback)
        self._hooks.setdefault(event, []).append(hook)

    def get(self, event: str) -> list[Hook]:
        return list(self._hooks.get(event, ()))

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())

    async def run(self, event: str, data: Any, *args: Any) -> Any:
        """Run hooks for an event sequentially and return ``data``."""
        for hook in self.get(event):
            await hook(data, *args)
        return data

    def copy(self) -> HookRegistry:
        clone = HookRegistry(self._events, self._detect_callback)
        clone._hooks = {event: list(hooks) for event, hooks in self._hooks.items()}
        return clone
