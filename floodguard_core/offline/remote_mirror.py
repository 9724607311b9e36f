# =============================================================================
# floodguard_core/offline/remote_mirror.py
# Supabase Mirror Client for FloodGuard Records
# =============================================================================
"""
RemoteMirrorClient - keyed upsert / collection-scoped fetch over one Supabase
table.

Remote schema (one row per record):

    create table floodguard_records (
        id          text primary key,      -- "<collection>_<recordId>"
        collection  text not null,         -- "sos" | "rescuers"
        value       jsonb not null         -- the record's wire format
    );

Every failure is raised as RemoteMirrorError. Transport errors are never
retried here; the circuit breaker owns that decision. The only loop is the
compare-and-set retry in increment_field, which re-reads after losing a race
with another writer.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, TypeVar
import logging

from supabase import Client, ClientOptions, create_client

from floodguard_core.config import RemoteConfig
from floodguard_core.errors import ConfigurationError, RemoteMirrorError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteMirrorClient:
    """
    Thin wrapper over a Supabase client for the FloodGuard records table.

    Usage:
        mirror = RemoteMirrorClient.from_config(settings.remote)
        rows = mirror.fetch_collection("sos")
        mirror.upsert("sos", record.id, record.to_dict())
    """

    BATCH_SIZE = 1000           # Supabase returns at most 1000 rows per request
    CAS_ATTEMPTS = 5            # Conditional-update retries before giving up

    def __init__(self, client: Client, table: str = "floodguard_records"):
        """
        Args:
            client: Supabase client (or any object with the same query API)
            table: Name of the records table
        """
        self.client = client
        self.table_name = table

    @classmethod
    def from_config(cls, config: RemoteConfig) -> RemoteMirrorClient:
        """Create a client with the configured request timeout."""
        if not config.is_well_formed:
            raise ConfigurationError(
                "Remote mirror requires a valid URL and key",
                config_key="SUPABASE_URL",
            )
        try:
            client = create_client(
                config.url.strip(),
                config.key.strip(),
                options=ClientOptions(postgrest_client_timeout=config.timeout_seconds),
            )
        except Exception as e:
            raise RemoteMirrorError(f"Failed to initialize Supabase client: {e}", operation="connect") from e
        return cls(client, table=config.table)

    @staticmethod
    def row_id(collection: str, record_id: str) -> str:
        return f"{collection}_{record_id}"

    def _call(self, operation: str, collection: str, func: Callable[[], T]) -> T:
        """Run one request, translating any client error into RemoteMirrorError."""
        try:
            return func()
        except RemoteMirrorError:
            raise
        except Exception as e:
            logger.debug(f"Remote {operation} on {collection} failed: {e}")
            raise RemoteMirrorError(
                f"Remote {operation} failed: {e}",
                operation=operation,
                collection=collection,
            ) from e

    # =========================================================================
    # READS
    # =========================================================================

    def fetch_collection(self, collection: str) -> List[Dict[str, Any]]:
        """
        Fetch ALL record values of a collection (handles the 1000 row limit).

        Returns:
            List of record dicts, empty when the remote has none
        """
        def fetch() -> List[Dict[str, Any]]:
            values: List[Dict[str, Any]] = []
            offset = 0
            while True:
                response = (
                    self.client.table(self.table_name)
                    .select("id, value")
                    .eq("collection", collection)
                    .order("id")
                    .range(offset, offset + self.BATCH_SIZE - 1)
                    .execute()
                )
                rows = response.data or []
                values.extend(row["value"] for row in rows if row.get("value") is not None)
                if len(rows) < self.BATCH_SIZE:
                    break
                offset += self.BATCH_SIZE
            return values

        return self._call("fetch", collection, fetch)

    def fetch_record(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one record value, or None if the row does not exist."""
        def fetch() -> Optional[Dict[str, Any]]:
            response = (
                self.client.table(self.table_name)
                .select("value")
                .eq("id", self.row_id(collection, record_id))
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return rows[0]["value"] if rows else None

        return self._call("fetch_record", collection, fetch)

    # =========================================================================
    # WRITES
    # =========================================================================

    def _row(self, collection: str, record_id: str, value: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": self.row_id(collection, record_id),
            "collection": collection,
            "value": value,
        }

    def upsert(self, collection: str, record_id: str, value: Dict[str, Any]) -> None:
        """Insert or replace the row keyed by (collection, record_id)."""
        self._call(
            "upsert",
            collection,
            lambda: self.client.table(self.table_name)
            .upsert(self._row(collection, record_id, value), on_conflict="id")
            .execute(),
        )

    def insert_if_absent(self, collection: str, record_id: str, value: Dict[str, Any]) -> None:
        """Insert the row unless one with the same key already exists."""
        self._call(
            "insert_if_absent",
            collection,
            lambda: self.client.table(self.table_name)
            .upsert(self._row(collection, record_id, value), on_conflict="id", ignore_duplicates=True)
            .execute(),
        )

    def compare_and_set(
        self,
        collection: str,
        record_id: str,
        field: str,
        expected: Any,
        value: Dict[str, Any],
    ) -> bool:
        """
        Replace a record only if value->>field still equals `expected`.

        Returns:
            True if the row was updated, False if another writer got there first
            (or the row does not exist)
        """
        def update() -> bool:
            response = (
                self.client.table(self.table_name)
                .update({"value": value})
                .eq("id", self.row_id(collection, record_id))
                .eq(f"value->>{field}", str(expected))
                .execute()
            )
            return bool(response.data)

        return self._call("compare_and_set", collection, update)

    def increment_field(
        self,
        collection: str,
        record_id: str,
        field: str,
        amount: int = 1,
    ) -> Dict[str, Any]:
        """
        Atomically add `amount` to an integer field of a record.

        Implemented as read + conditional update, retried when a concurrent
        writer changed the field in between.

        Returns:
            The record value as written
        """
        for attempt in range(1, self.CAS_ATTEMPTS + 1):
            current = self.fetch_record(collection, record_id)
            if current is None:
                raise RemoteMirrorError(
                    f"Cannot increment {field}: {collection}/{record_id} does not exist",
                    operation="increment",
                    collection=collection,
                )
            old = int(current.get(field, 0))
            updated = {**current, field: old + amount}
            if self.compare_and_set(collection, record_id, field, old, updated):
                return updated
            logger.debug(f"Lost increment race on {collection}/{record_id} (attempt {attempt})")

        raise RemoteMirrorError(
            f"Gave up incrementing {field} on {collection}/{record_id} after {self.CAS_ATTEMPTS} attempts",
            operation="increment",
            collection=collection,
        )

    def delete(self, collection: str, record_id: str) -> None:
        """Delete the row keyed by (collection, record_id)."""
        self._call(
            "delete",
            collection,
            lambda: self.client.table(self.table_name)
            .delete()
            .eq("id", self.row_id(collection, record_id))
            .execute(),
        )
