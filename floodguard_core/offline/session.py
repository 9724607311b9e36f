# =============================================================================
# floodguard_core/offline/session.py
# Sync Session (breaker + remote handle)
# =============================================================================
"""
SyncSession - the per-process remote state the orchestrator owns.

Built once at startup from configuration and passed to the orchestrator
explicitly, so tests can hand in a fake mirror and a fresh breaker.
"""

from __future__ import annotations
from typing import Any, Callable, Optional, Tuple, TypeVar
import logging

from floodguard_core.config import RemoteConfig
from floodguard_core.errors import RemoteMirrorError
from floodguard_core.offline.circuit_breaker import CircuitBreaker
from floodguard_core.offline.remote_mirror import RemoteMirrorClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncSession:
    """Holds the circuit breaker and the remote mirror client for one process."""

    def __init__(self, remote: Optional[Any], breaker: CircuitBreaker):
        """
        Args:
            remote: RemoteMirrorClient (or a compatible fake); None for local-only
            breaker: Breaker gating every remote call
        """
        self.remote = remote
        self.breaker = breaker

    @classmethod
    def from_config(cls, config: RemoteConfig) -> SyncSession:
        """
        Build a session from remote configuration.

        Missing or malformed configuration, or a client that cannot be
        constructed, yields a local-only session with the breaker OPEN.
        """
        if not config.is_well_formed:
            return cls.local_only()

        try:
            remote = RemoteMirrorClient.from_config(config)
        except RemoteMirrorError as e:
            logger.warning(f"Remote mirror unavailable at startup: {e}")
            session = cls(None, CircuitBreaker(configured=True))
            session.breaker.trip("connect", e)
            return session

        return cls(remote, CircuitBreaker(configured=True))

    @classmethod
    def local_only(cls) -> SyncSession:
        return cls(None, CircuitBreaker(configured=False))

    @property
    def allows_remote(self) -> bool:
        return self.remote is not None and self.breaker.allows_remote

    def call_remote(self, operation: str, func: Callable[..., T], *args, **kwargs) -> Tuple[bool, Optional[T]]:
        """
        Run a remote call if the breaker permits it.

        Returns:
            (True, result) on success; (False, None) when skipped or failed.
            A failure trips the breaker.
        """
        if not self.allows_remote:
            return False, None

        try:
            result = func(*args, **kwargs)
        except RemoteMirrorError as e:
            self.breaker.trip(operation, e)
            return False, None

        self.breaker.record_success()
        return True, result
