# =============================================================================
# floodguard_core/offline/circuit_breaker.py
# Remote Health Latch
# =============================================================================
"""
CircuitBreaker - decides whether remote calls are attempted at all.

Two states:
- CLOSED: remote calls permitted
- OPEN:   remote calls skipped, everything runs against the local cache

The breaker starts CLOSED only when the remote configuration is well formed.
The first remote failure opens it for the rest of the process lifetime. There
is no half-open probing, so a bad network costs one stall, not one per call.
"""

from __future__ import annotations
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
import logging

logger = logging.getLogger(__name__)


class BreakerStatus(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"       # Remote calls permitted
    OPEN = "open"           # Remote calls skipped


@dataclass
class BreakerState:
    """Current breaker state with metadata."""
    status: BreakerStatus = BreakerStatus.OPEN
    configured: bool = False
    opened_at: Optional[datetime] = None
    tripped_by: Optional[str] = None
    failure_count: int = 0
    success_count: int = 0
    last_error: Optional[str] = None


class CircuitBreaker:
    """
    Session-scoped latch gating remote access.

    Usage:
        breaker = CircuitBreaker(configured=settings.remote.is_well_formed)
        if breaker.allows_remote:
            try:
                mirror.upsert(...)
            except RemoteMirrorError as e:
                breaker.trip("upsert sos", e)
    """

    def __init__(self, configured: bool):
        """
        Args:
            configured: Whether remote endpoint and credential are present and valid
        """
        self._state = BreakerState(
            status=BreakerStatus.CLOSED if configured else BreakerStatus.OPEN,
            configured=configured,
        )
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[BreakerState], None]] = []

        if not configured:
            logger.info("Remote not configured; circuit breaker starts OPEN (local-only)")

    @property
    def state(self) -> BreakerState:
        """Get current breaker state."""
        return self._state

    @property
    def status(self) -> BreakerStatus:
        return self._state.status

    @property
    def allows_remote(self) -> bool:
        """True while remote calls should be attempted."""
        return self._state.status == BreakerStatus.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state.status == BreakerStatus.OPEN

    def record_success(self) -> None:
        """Count a successful remote call."""
        with self._lock:
            self._state.success_count += 1

    def trip(self, operation: str, error: Optional[BaseException] = None) -> None:
        """
        Record a remote failure and latch OPEN.

        Args:
            operation: Description of the failed call (for diagnostics)
            error: The failure, if any
        """
        with self._lock:
            self._state.failure_count += 1
            self._state.last_error = str(error) if error else None
            if self._state.status == BreakerStatus.OPEN:
                return
            self._state.status = BreakerStatus.OPEN
            self._state.opened_at = datetime.now()
            self._state.tripped_by = operation

        logger.warning(f"Remote call '{operation}' failed, switching to local-only for this session: {error}")
        self._notify_callbacks()

    def register_callback(self, callback: Callable[[BreakerState], None]) -> None:
        """
        Register a callback for breaker state changes.

        Args:
            callback: Function called with BreakerState when the breaker opens
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[BreakerState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of a state change."""
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in breaker callback: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "online": self.allows_remote,
            "configured": self._state.configured,
            "opened_at": self._state.opened_at.isoformat() if self._state.opened_at else None,
            "tripped_by": self._state.tripped_by,
            "failures": self._state.failure_count,
            "successes": self._state.success_count,
            "error": self._state.last_error,
        }
