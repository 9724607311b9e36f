# =============================================================================
# floodguard_core/offline/local_store.py
# Local SQLite Cache for Offline Operations
# =============================================================================
"""
LocalCacheStore - durable per-device key-value storage.

Features:
- One SQLite key-value table holding four keys (SOS list, rescuer list and
  two identity pointers), values stored as UTF-8 JSON
- Whole-collection overwrite in a single transaction
- Demonstration seed data on first read of an absent collection
- Corrupt or undecodable blobs are treated as absent and reseeded
- Thread-local connections
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
import logging

from floodguard_core.errors import LocalStoreError
from floodguard_core.models import (
    RESCUERS_COLLECTION,
    SINCERE_TEAM_ID,
    SINCERE_TEAM_NAME,
    SOS_COLLECTION,
    GeoLocation,
    RecordParseError,
    Rescuer,
    SOSRequest,
    SOSStatus,
    now_ms,
    parse_records,
)

logger = logging.getLogger(__name__)

# Identity pointer names
MY_SOS_POINTER = "my_sos_id"
MY_RESCUER_POINTER = "my_rescuer_id"

# Persisted key names, shared with the browser client's localStorage layout
STORAGE_KEYS = {
    SOS_COLLECTION: "floodguard_sos_data",
    RESCUERS_COLLECTION: "floodguard_rescuers_data",
    MY_SOS_POINTER: "floodguard_user_sos_id",
    MY_RESCUER_POINTER: "floodguard_local_rescuer_id",
}


def seed_sos(now: int) -> List[SOSRequest]:
    """Two active requests near Kuala Lumpur so a fresh board is never empty."""
    return [
        SOSRequest(
            id="seed-1",
            name="Ahmad Razak",
            phone="012-3456789",
            landmark="Near the big mosque, water level rising",
            status=SOSStatus.ACTIVE,
            location=GeoLocation(lat=3.1412, lng=101.6865),
            timestamp=now - 3_600_000,
            is_medical_emergency=False,
        ),
        SOSRequest(
            id="seed-2",
            name="Somsak Boon",
            phone="081-2345678",
            landmark="Red roof house, stuck on 2nd floor",
            status=SOSStatus.ACTIVE,
            location=GeoLocation(lat=3.1450, lng=101.6900),
            timestamp=now - 1_800_000,
            is_medical_emergency=True,
        ),
    ]


def seed_rescuers(now: int) -> List[Rescuer]:
    return [
        Rescuer(id=SINCERE_TEAM_ID, name=SINCERE_TEAM_NAME, phone="-", rescues_count=42),
        Rescuer(id="117", username="chief117", name="Master Chief", phone="011-117117", rescues_count=15),
        Rescuer(id="204", username="rescue_john", name="John Doe", phone="011-1111111", rescues_count=8),
    ]


SEEDS: Dict[str, Callable[[int], List[Any]]] = {
    SOS_COLLECTION: seed_sos,
    RESCUERS_COLLECTION: seed_rescuers,
}


class LocalCacheStore:
    """
    SQLite-backed local cache.

    Only the SyncOrchestrator writes to it; the UI reads through the
    orchestrator as well.
    """

    # Default database location
    DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "local_data" / "floodguard.db"

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Initialize local store.

        Args:
            db_path: Path to SQLite database file
            clock: Millisecond clock used to date the seed data
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self._clock = clock
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
            except (sqlite3.Error, OSError) as e:
                raise LocalStoreError(f"Cannot open local cache at {self.db_path}: {e}") from e
            self._local.connection = connection
            with self._connections_lock:
                self._connections.append(connection)
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise LocalStoreError(f"Local cache write failed: {e}") from e
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        with self.transaction() as conn:
            conn.execute(self.SCHEMA)

        self._initialized = True
        logger.info(f"Local cache initialized at: {self.db_path}")

    # =========================================================================
    # RAW KEY-VALUE ACCESS
    # =========================================================================

    def _read_raw(self, key: str) -> Optional[str]:
        """Read a value as text; a value that is not valid UTF-8 reads as None."""
        self.initialize()
        try:
            # Read as bytes so sqlite never has to decode a damaged value itself
            row = self._get_connection().execute(
                "SELECT CAST(value AS BLOB) FROM kv_store WHERE key = ?", [key]
            ).fetchone()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Local cache read failed: {e}", key=key) from e
        if not row or row[0] is None:
            return None
        try:
            return bytes(row[0]).decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Unreadable local value under {key}, treating as absent: {e}")
            return None

    def _write_raw(self, conn: sqlite3.Connection, key: str, value: Optional[str]) -> None:
        if value is None:
            conn.execute("DELETE FROM kv_store WHERE key = ?", [key])
        else:
            conn.execute(
                """
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, value, datetime.now().isoformat()],
            )

    def write_raw(self, key: str, value: Optional[str]) -> None:
        """Write an unparsed value (or delete the key with None)."""
        self.initialize()
        with self.transaction() as conn:
            self._write_raw(conn, key, value)

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def _key_for(self, collection: str) -> str:
        if collection not in SEEDS:
            raise ValueError(f"Unknown collection: {collection}")
        return STORAGE_KEYS[collection]

    def get(self, collection: str) -> List[Any]:
        """
        Get every record of a collection.

        Seeds the collection if it was never written or its blob is corrupt.

        Args:
            collection: "sos" or "rescuers"

        Returns:
            List of SOSRequest or Rescuer records in stored order
        """
        key = self._key_for(collection)
        raw = self._read_raw(key)

        if raw is not None:
            try:
                return parse_records(collection, json.loads(raw))
            except (json.JSONDecodeError, RecordParseError) as e:
                logger.warning(f"Corrupt local {collection} data, reseeding: {e}")

        records = SEEDS[collection](self._clock())
        self.put(collection, records)
        logger.info(f"Seeded local {collection} with {len(records)} demonstration records")
        return records

    def put(self, collection: str, records: Sequence[Any]) -> None:
        """Overwrite a whole collection atomically."""
        self.put_many({collection: records})

    def put_many(self, collections: Mapping[str, Sequence[Any]]) -> None:
        """
        Overwrite several collections in one transaction.

        Args:
            collections: Mapping of collection name to its full record list
        """
        encoded = {
            self._key_for(collection): json.dumps([r.to_dict() for r in records])
            for collection, records in collections.items()
        }
        self.initialize()
        with self.transaction() as conn:
            for key, value in encoded.items():
                self._write_raw(conn, key, value)

    # =========================================================================
    # IDENTITY POINTERS
    # =========================================================================

    def get_pointer(self, name: str) -> Optional[str]:
        """Get an identity pointer; a corrupt value reads as None."""
        raw = self._read_raw(STORAGE_KEYS[name])
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Corrupt local pointer {name}, ignoring")
            return None
        return value if isinstance(value, str) and value else None

    def set_pointer(self, name: str, value: Optional[str]) -> None:
        """Set or clear (with None) an identity pointer."""
        self.write_raw(STORAGE_KEYS[name], json.dumps(value) if value else None)

    # =========================================================================
    # DIAGNOSTICS
    # =========================================================================

    def get_status_display(self) -> Dict[str, Any]:
        """Get store information for UI display."""
        try:
            rows = self._get_connection().execute(
                "SELECT key, length(value), updated_at FROM kv_store"
            ).fetchall() if self._initialized else []
        except sqlite3.Error as e:
            return {"path": str(self.db_path), "error": str(e)}
        return {
            "path": str(self.db_path),
            "keys": {key: {"bytes": size, "updated_at": updated} for key, size, updated in rows},
        }

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            for connection in self._connections:
                connection.close()
            self._connections.clear()
        self._local = threading.local()
