# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import copy
import random
from collections import Counter
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from floodguard_core.errors import RemoteMirrorError
from floodguard_core.models import (
    GeoLocation,
    Rescuer,
    SOSRequest,
    SOSStatus,
)
from floodguard_core.offline.circuit_breaker import CircuitBreaker
from floodguard_core.offline.local_store import LocalCacheStore
from floodguard_core.offline.notification_bus import NotificationBus
from floodguard_core.offline.session import SyncSession
from floodguard_core.offline.sync_orchestrator import SyncOrchestrator


FIXED_NOW = 1_700_000_000_000


# =============================================================================
# FAKES
# =============================================================================

class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = FIXED_NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> None:
        self.now += ms


class InMemoryMirror:
    """
    Stand-in for RemoteMirrorClient.

    Counts every call by operation name and raises RemoteMirrorError when
    `fail_all` is set or the operation is listed in `fail_on`.
    """

    def __init__(self):
        self.rows: Dict[tuple, Dict[str, Any]] = {}
        self.calls: Counter = Counter()
        self.fail_all = False
        self.fail_on: set = set()

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def _check(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.fail_all or operation in self.fail_on:
            raise RemoteMirrorError(f"simulated {operation} failure", operation=operation)

    def seed(self, collection: str, records: List[Any]) -> None:
        for record in records:
            self.rows[(collection, record.id)] = record.to_dict()

    def value(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        value = self.rows.get((collection, record_id))
        return copy.deepcopy(value) if value is not None else None

    def fetch_collection(self, collection: str) -> List[Dict[str, Any]]:
        self._check("fetch_collection")
        return [
            copy.deepcopy(value)
            for (coll, _), value in sorted(self.rows.items())
            if coll == collection
        ]

    def fetch_record(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        self._check("fetch_record")
        return self.value(collection, record_id)

    def upsert(self, collection: str, record_id: str, value: Dict[str, Any]) -> None:
        self._check("upsert")
        self.rows[(collection, record_id)] = copy.deepcopy(value)

    def insert_if_absent(self, collection: str, record_id: str, value: Dict[str, Any]) -> None:
        self._check("insert_if_absent")
        self.rows.setdefault((collection, record_id), copy.deepcopy(value))

    def compare_and_set(self, collection, record_id, field, expected, value) -> bool:
        self._check("compare_and_set")
        current = self.rows.get((collection, record_id))
        if current is None or str(current.get(field)) != str(expected):
            return False
        self.rows[(collection, record_id)] = copy.deepcopy(value)
        return True

    def increment_field(self, collection, record_id, field, amount: int = 1) -> Dict[str, Any]:
        self._check("increment_field")
        current = self.rows.get((collection, record_id))
        if current is None:
            raise RemoteMirrorError(f"{collection}/{record_id} does not exist", operation="increment")
        current[field] = int(current.get(field, 0)) + amount
        return copy.deepcopy(current)

    def delete(self, collection: str, record_id: str) -> None:
        self._check("delete")
        self.rows.pop((collection, record_id), None)


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Controllable millisecond clock"""
    return FakeClock()


@pytest.fixture
def sample_roster():
    """Sincere pool plus two registered rescuers; "117" has 5 rescues"""
    return [
        Rescuer(id="000", name="Sincere Rescue Team", phone="-", rescues_count=42),
        Rescuer(id="117", name="Master Chief", phone="011-117117", username="chief117", rescues_count=5),
        Rescuer(id="204", name="John Doe", phone="011-1111111", username="rescue_john", rescues_count=8),
    ]


@pytest.fixture
def sample_sos():
    """One active request with a location"""
    return SOSRequest(
        id="sos-existing",
        name="Siti",
        phone="019-5551234",
        landmark="Blue gate beside the school",
        status=SOSStatus.ACTIVE,
        location=GeoLocation(lat=3.1390, lng=101.6869),
        timestamp=FIXED_NOW - 60_000,
    )


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def local_store(tmp_path, clock):
    """LocalCacheStore on a temporary SQLite file"""
    store = LocalCacheStore(tmp_path / "floodguard.db", clock=clock)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def mirror(sample_roster, sample_sos):
    """In-memory remote mirror holding the sample roster and one SOS"""
    fake = InMemoryMirror()
    fake.seed("rescuers", sample_roster)
    fake.seed("sos", [sample_sos])
    return fake


def _sequential_ids():
    counter = iter(range(1, 10_000))
    return lambda: f"sos-{next(counter):04d}"


@pytest.fixture
def online_orchestrator(local_store, mirror, clock):
    """Orchestrator with a reachable remote mirror"""
    session = SyncSession(mirror, CircuitBreaker(configured=True))
    return SyncOrchestrator(
        session,
        local_store,
        NotificationBus(),
        clock=clock,
        id_factory=_sequential_ids(),
        rng=random.Random(7),
    )


@pytest.fixture
def offline_orchestrator(local_store, sample_roster, clock):
    """Local-only orchestrator whose cache holds the sample roster"""
    local_store.put("rescuers", sample_roster)
    return SyncOrchestrator(
        SyncSession.local_only(),
        local_store,
        NotificationBus(),
        clock=clock,
        id_factory=_sequential_ids(),
        rng=random.Random(7),
    )


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.eq.return_value.order.return_value \
        .range.return_value.execute.return_value.data = []
    return mock_client
