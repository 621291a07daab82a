"""Per-key debounce on the running asyncio loop."""

import asyncio
from typing import Any, Callable, Generic, TypeVar


T = TypeVar("T")


class KeyedDebouncer(Generic[T]):
    """
    Delay a callback until a key has been quiet for `delay` seconds.

    Each key has its own timer, so rapid calls for one key collapse into a
    single callback carrying the last value, while other keys are unaffected.

    Usage:
        debouncer = KeyedDebouncer(0.3, save_position)
        debouncer.call("member-1", Position(x=1, y=2))
    """

    def __init__(self, delay: float, callback: Callable[[str, T], Any]):
        self.delay = delay
        self.callback = callback
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._latest: dict[str, T] = {}

    def call(self, key: str, value: T) -> None:
        """Record value for key and restart its quiet window."""
        loop = asyncio.get_running_loop()
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()
        self._latest[key] = value
        self._handles[key] = loop.call_later(self.delay, self._fire, key)

    def _fire(self, key: str) -> None:
        self._handles.pop(key, None)
        if key in self._latest:
            self.callback(key, self._latest.pop(key))

    def is_pending(self, key: str) -> bool:
        return key in self._handles

    def pending_keys(self) -> list[str]:
        return list(self._handles)

    def cancel(self, key: str) -> None:
        """Drop a pending call without firing it."""
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()
        self._latest.pop(key, None)

    def flush(self) -> None:
        """Fire every pending call now."""
        for key in list(self._handles):
            self._handles.pop(key).cancel()
            if key in self._latest:
                self.callback(key, self._latest.pop(key))
