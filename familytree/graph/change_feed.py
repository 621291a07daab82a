"""In-process change notifications for tree rows."""

from collections import defaultdict
from typing import Callable

from familytree.logging import get_logger


logger = get_logger(__name__)


class ChangeFeed:
    """Fan out 'rows changed' signals per owner.

    Subscribers only learn that something changed for an owner; they are
    expected to reload.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Callable[[], None]]] = defaultdict(list)

    def subscribe(self, owner_id: str, on_change: Callable[[], None]) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers[owner_id].append(on_change)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(owner_id, [])
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    def publish(self, owner_id: str) -> None:
        """Notify every subscriber of owner_id."""
        for callback in list(self._subscribers.get(owner_id, [])):
            try:
                callback()
            except Exception as e:
                logger.error("change_callback_failed", owner_id=owner_id, error=str(e))

    def subscriber_count(self, owner_id: str) -> int:
        return len(self._subscribers.get(owner_id, []))
