"""
Minimal synchronous event emitter.

Models emit ``insert``, ``update`` and ``remove`` after the corresponding
store call succeeds. Listeners are plain callables invoked in registration
order; a listener that raises propagates to the emitting operation.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Mixin providing on/once/off/emit."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[tuple[Listener, bool]]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Register a listener. Returns it so ``on`` can be used as a decorator."""
        self._listeners.setdefault(event, []).append((listener, False))
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        self._listeners.setdefault(event, []).append((listener, True))
        return listener

    def off(self, event: str, listener: Listener | None = None) -> None:
        """Remove one listener, or every listener of ``event``."""
        if listener is None:
            self._listeners.pop(event, None)
            return
        self._listeners[event] = [
            entry for entry in self._listeners.get(event, []) if entry[0] is not listener
        ]

    def listeners(self, event: str) -> list[Listener]:
        return [fn for fn, _ in self._listeners.get(event, [])]

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener of ``event``.

        Returns:
            True if at least one listener was called
        """
        entries = self._listeners.get(event)
        if not entries:
            return False

        self._listeners[event] = [entry for entry in entries if not entry[1]]
        logger.debug(f"Emitting '{event}' to {len(entries)} listener(s)")
        for fn, _ in entries:
            fn(*args)
        return True
