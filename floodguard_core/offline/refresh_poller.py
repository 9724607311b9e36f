# =============================================================================
# floodguard_core/offline/refresh_poller.py
# Background Refresh Loop for Views
# =============================================================================
"""
RefreshPoller - keeps a view's snapshot fresh.

Refreshes on a fixed interval (other devices are only seen this way) and
immediately whenever DATA_CHANGED is published on this device.
"""

from __future__ import annotations
import threading
from typing import Callable, Optional
import logging

from floodguard_core.errors import ErrorContext
from floodguard_core.offline.notification_bus import NotificationBus
from floodguard_core.offline.sync_orchestrator import SyncSnapshot

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0


class RefreshPoller:
    """
    Scoped poller; subscribes on start and unsubscribes on stop.

    Usage:
        with RefreshPoller(orchestrator.refresh, orchestrator.bus, on_snapshot=render):
            ...
    """

    def __init__(
        self,
        refresh: Callable[[], SyncSnapshot],
        bus: NotificationBus,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_snapshot: Optional[Callable[[SyncSnapshot], None]] = None,
    ):
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")
        self._refresh = refresh
        self._bus = bus
        self.interval = interval
        self._on_snapshot = on_snapshot
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.last_snapshot: Optional[SyncSnapshot] = None
        self.refresh_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def refresh_now(self) -> Optional[SyncSnapshot]:
        """Refresh once on the calling thread; failures are logged, not raised."""
        with ErrorContext("Refreshing FloodGuard data") as ctx:
            snapshot = self._refresh()
            self.last_snapshot = snapshot
            self.refresh_count += 1
            if self._on_snapshot:
                self._on_snapshot(snapshot)
        if ctx.error is not None:
            return None
        return self.last_snapshot

    def start(self) -> None:
        """Refresh immediately, then keep refreshing in the background."""
        if self.is_running:
            return

        self._stop.clear()
        self._wake.clear()
        self._unsubscribe = self._bus.subscribe(self._on_data_changed)
        self.refresh_now()

        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="RefreshPoller",
        )
        self._thread.start()
        logger.debug(f"Refresh poller started (every {self.interval}s)")

    def stop(self) -> None:
        """Stop polling and drop the bus subscription."""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self._stop.set()
        self._wake.set()
        if self._thread:
            self._thread.join(timeout=10)
            self._thread = None
        logger.debug("Refresh poller stopped")

    def _on_data_changed(self, event: str) -> None:
        self._wake.set()

    def _poll_loop(self) -> None:
        while not self._stop.is_set():
            # Interval elapsed or a local change woke us
            self._wake.wait(timeout=self.interval)
            self._wake.clear()
            if self._stop.is_set():
                break
            self.refresh_now()

    def __enter__(self) -> RefreshPoller:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.stop()
        return False
