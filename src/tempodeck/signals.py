"""Synchronous callback registry for change notifications."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

Callback = Callable[..., Any]


class Signal:
    """Ordered set of callbacks invoked on `emit`.

    Callbacks run on the caller's thread in connection order. An exception
    raised by a callback propagates to the emitter and skips the remaining
    callbacks.
    """

    def __init__(self) -> None:
        self._callbacks: list[Callback] = []

    def connect(self, callback: Callback) -> Callback:
        """Register a callback and return it, so this works as a decorator."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)
        return callback

    def disconnect(self, callback: Callback) -> bool:
        """Remove a callback; return whether it was connected."""
        try:
            self._callbacks.remove(callback)
        except ValueError:
            return False
        return True

    def emit(self, *args: Any) -> None:
        """Invoke every connected callback with `args`."""
        for callback in list(self._callbacks):
            callback(*args)

    def __len__(self) -> int:
        return len(self._callbacks)
