# =============================================================================
# floodguard_core/offline/__init__.py
# Local-First Sync Engine for FloodGuard
# =============================================================================
"""
Local-First Sync Engine

Every device keeps a full local copy of the SOS board and the rescuer roster
and uses a shared remote mirror opportunistically. The app behaves the same
with or without a network; devices converge by polling.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                    LOCAL-FIRST ARCHITECTURE                      │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                 SyncOrchestrator                          │  │
│   │        (Single API - views and services use this)         │  │
│   └──────────────────────────────────────────────────────────┘  │
│          │                  │                    │               │
│          ▼                  ▼                    ▼               │
│   ┌──────────────┐  ┌────────────────┐  ┌─────────────────┐     │
│   │ SyncSession  │  │ LocalCacheStore│  │ NotificationBus │     │
│   │  (breaker +  │  │    (SQLite)    │  │  (same device)  │     │
│   │   remote)    │  └────────────────┘  └─────────────────┘     │
│   └──────────────┘                               │               │
│          │                                       ▼               │
│          ▼                              ┌─────────────────┐     │
│   ┌──────────────┐                      │  RefreshPoller  │     │
│   │ RemoteMirror │                      │ (timer + wakes) │     │
│   │  (Supabase)  │                      └─────────────────┘     │
│   └──────────────┘                                               │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from floodguard_core.config import load_settings
from floodguard_core.offline import build_orchestrator

orchestrator = build_orchestrator(load_settings())
snapshot = orchestrator.refresh()
print(snapshot.online, len(snapshot.sos))
"""

from floodguard_core.offline.circuit_breaker import (
    BreakerState,
    BreakerStatus,
    CircuitBreaker,
)

from floodguard_core.offline.local_store import (
    LocalCacheStore,
    MY_RESCUER_POINTER,
    MY_SOS_POINTER,
    STORAGE_KEYS,
)

from floodguard_core.offline.remote_mirror import RemoteMirrorClient

from floodguard_core.offline.notification_bus import (
    DATA_CHANGED,
    NotificationBus,
)

from floodguard_core.offline.session import SyncSession

from floodguard_core.offline.attribution import (
    AttributionResult,
    allocate_rescuer_id,
    resolve_credit_target,
    check_transition,
)

from floodguard_core.offline.sync_orchestrator import (
    SyncOrchestrator,
    SyncSnapshot,
    build_orchestrator,
    rank_rescuers,
)

from floodguard_core.offline.refresh_poller import RefreshPoller

__all__ = [
    # Circuit Breaker
    "BreakerState",
    "BreakerStatus",
    "CircuitBreaker",
    # Local Cache
    "LocalCacheStore",
    "MY_RESCUER_POINTER",
    "MY_SOS_POINTER",
    "STORAGE_KEYS",
    # Remote Mirror
    "RemoteMirrorClient",
    # Notifications
    "DATA_CHANGED",
    "NotificationBus",
    # Session
    "SyncSession",
    # Attribution
    "AttributionResult",
    "allocate_rescuer_id",
    "resolve_credit_target",
    "check_transition",
    # Orchestrator (Main API)
    "SyncOrchestrator",
    "SyncSnapshot",
    "build_orchestrator",
    "rank_rescuers",
    "RefreshPoller",
]
