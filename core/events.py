# =============================================================================
# core/events.py - In-process Listener Channels
# =============================================================================
# Fan-out channels the auth service uses to talk to dependent views:
# - state snapshots (readiness + current user)
# - navigation signals
# - user-facing notices
#
# Usage:
#   channel: ListenerChannel[Notice] = ListenerChannel("notices")
#   subscription = channel.subscribe(lambda notice: print(notice.message))
#   channel.publish(Notice(title="Hi", message="Welcome"))
#   subscription.unsubscribe()
# =============================================================================

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class Subscription:
    """
    Handle returned by subscribe(); call unsubscribe() on teardown.

    Unsubscribing twice is harmless.
    """

    def __init__(self, release: Callable[[], None]):
        self._release: Callable[[], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        if self._release is not None:
            release, self._release = self._release, None
            release()


class ListenerChannel(Generic[T]):
    """
    Synchronous fan-out to registered listeners.

    Listeners run in subscription order on the caller's stack. A listener
    that raises is logged and skipped; the others still receive the message.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: dict[int, Listener] = {}
        self._next_id = 0

    def subscribe(self, listener: Listener) -> Subscription:
        listener_id = self._next_id
        self._next_id += 1
        self._listeners[listener_id] = listener
        logger.debug(f"Listener subscribed to {self.name} ({len(self._listeners)} total)")
        return Subscription(lambda: self._listeners.pop(listener_id, None))

    def publish(self, message: T) -> int:
        """
        Deliver a message to every listener.

        Returns:
            int: Number of listeners that handled it without raising
        """
        delivered = 0
        for listener in list(self._listeners.values()):
            try:
                listener(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Listener on {self.name} failed: {e}")
        return delivered

    def __len__(self) -> int:
        return len(self._listeners)
