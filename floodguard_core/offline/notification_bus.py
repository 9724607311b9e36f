# =============================================================================
# floodguard_core/offline/notification_bus.py
# Same-Device Change Notifications
# =============================================================================
"""
NotificationBus - publish/subscribe between views open on the same device.

There is exactly one event, DATA_CHANGED, and it carries no payload:
subscribers re-fetch through the SyncOrchestrator. Other devices are not
reached by this bus; they converge by polling.
"""

from __future__ import annotations
import threading
from typing import Callable, List
import logging

logger = logging.getLogger(__name__)

DATA_CHANGED = "data_changed"

Handler = Callable[[str], None]


class NotificationBus:
    """
    In-process invalidation channel.

    Usage:
        bus = NotificationBus()
        unsubscribe = bus.subscribe(lambda event: view.reload())
        bus.publish()
        unsubscribe()
    """

    def __init__(self, name: str = "floodguard_updates"):
        self.name = name
        self._handlers: List[Handler] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """
        Register a handler.

        Returns:
            A function that removes the handler; calling it twice is harmless
        """
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: str = DATA_CHANGED) -> None:
        """Deliver an event to every handler; a failing handler does not stop the rest."""
        if event != DATA_CHANGED:
            raise ValueError(f"Unsupported event: {event}")

        with self._lock:
            handlers = list(self._handlers)

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in {self.name} subscriber: {e}")
