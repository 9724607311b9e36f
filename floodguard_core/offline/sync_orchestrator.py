# =============================================================================
# floodguard_core/offline/sync_orchestrator.py
# Sync Orchestrator - Single API for Online/Offline Operations
# =============================================================================
"""
SyncOrchestrator - the façade every read and write goes through.

For every mutating call:
1. If the breaker is CLOSED, try the remote mirror first
2. On success, write the same record into the local cache
3. On failure, trip the breaker and carry on local-only
4. The local cache is always read before merging and written afterwards
5. Publish DATA_CHANGED

Reads prefer the remote mirror while the breaker is CLOSED and fall back to
the local cache (seeding it if empty) as soon as it is not.

SOS writes are conditioned on the status they were read with, so an edit or a
chat message never reopens a request another device has resolved.

Usage:
------
from floodguard_core.offline import build_orchestrator
from floodguard_core.config import load_settings

orchestrator = build_orchestrator(load_settings())
sos = orchestrator.create_sos(SOSDraft(name="A", phone="1"))
orchestrator.attribute_rescue(sos.id, "117")
"""

from __future__ import annotations
import random
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging

from floodguard_core.config import FloodGuardSettings
from floodguard_core.errors import (
    InvalidTransitionError,
    LocalStoreError,
    RecordNotFoundError,
    RemoteMirrorError,
)
from floodguard_core.models import (
    RESCUERS_COLLECTION,
    SOS_COLLECTION,
    ChatMessage,
    RecordParseError,
    Rescuer,
    SOSDraft,
    SOSPatch,
    SOSRequest,
    SOSStatus,
    now_ms,
)
from floodguard_core.offline.attribution import (
    AttributionResult,
    allocate_rescuer_id,
    apply_rescue,
    check_transition,
    find_rescuer,
    resolve_credit_target,
)
from floodguard_core.offline.local_store import (
    MY_RESCUER_POINTER,
    MY_SOS_POINTER,
    LocalCacheStore,
)
from floodguard_core.offline.notification_bus import NotificationBus
from floodguard_core.offline.session import SyncSession

logger = logging.getLogger(__name__)

# Attempts at a conditional status change before giving up on the remote
STATUS_CLAIM_ATTEMPTS = 3


@dataclass
class SyncSnapshot:
    """Everything a view needs to re-render after a refresh."""
    sos: List[SOSRequest]
    my_sos: Optional[SOSRequest]
    rescuers: List[Rescuer]             # ranked by rescues, highest first
    online: bool
    refreshed_at: int = field(default_factory=now_ms)


def rank_rescuers(rescuers: Sequence[Rescuer]) -> List[Rescuer]:
    return sorted(rescuers, key=lambda r: (-r.rescues_count, r.id))


def _replace_or_append(records: Sequence[Any], record: Any) -> List[Any]:
    merged = []
    found = False
    for existing in records:
        if existing.id == record.id:
            merged.append(record)
            found = True
        else:
            merged.append(existing)
    if not found:
        merged.append(record)
    return merged


class SyncOrchestrator:
    """
    Local-first façade over the remote mirror and the local cache.

    Operations are serialized by a re-entrant lock, so a background poller and
    a foreground caller behave like one logical thread.
    """

    PARSERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
        SOS_COLLECTION: SOSRequest.from_dict,
        RESCUERS_COLLECTION: Rescuer.from_dict,
    }

    def __init__(
        self,
        session: SyncSession,
        store: LocalCacheStore,
        bus: Optional[NotificationBus] = None,
        clock: Callable[[], int] = now_ms,
        id_factory: Optional[Callable[[], str]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            session: Breaker + remote client for this process
            store: Device-local cache
            bus: Same-device change notifications
            clock: Millisecond clock for timestamps
            id_factory: Generator for new SOS ids
            rng: Random source for rescuer id allocation
        """
        self.session = session
        self.store = store
        self.bus = bus or NotificationBus()
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._rng = rng or random.Random()
        self._lock = threading.RLock()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_online(self) -> bool:
        """True while remote calls are being attempted."""
        return self.session.allows_remote

    # =========================================================================
    # INTERNAL READ / WRITE PATHS
    # =========================================================================

    def _parse_remote(self, collection: str, values: List[Dict[str, Any]]) -> List[Any]:
        """Parse remote values, skipping rows another client wrote badly."""
        parser = self.PARSERS[collection]
        records = []
        for value in values:
            try:
                records.append(parser(value))
            except RecordParseError as e:
                logger.warning(f"Skipping malformed remote {collection} record: {e}")
        return records

    def _read(self, collection: str) -> List[Any]:
        """Remote-preferred read with local fallback; refreshes the cache on success."""
        ok, values = self.session.call_remote(
            f"fetch {collection}",
            lambda: self.session.remote.fetch_collection(collection),
        )
        if ok:
            records = self._parse_remote(collection, values)
            try:
                self.store.put(collection, records)
            except LocalStoreError as e:
                logger.error(f"Could not refresh local {collection} cache: {e}")
            return records

        return self.store.get(collection)

    def _write_local(self, collections: Dict[str, List[Any]], remote_ok: bool) -> None:
        """
        Write merged collections to the cache.

        A local failure is only fatal when the remote write did not happen
        either.
        """
        try:
            self.store.put_many(collections)
        except LocalStoreError as e:
            if not remote_ok:
                raise
            logger.error(f"Remote write succeeded but local cache update failed: {e}")

    def _merge_local(self, collection: str, record: Any, remote_ok: bool) -> None:
        try:
            current = self.store.get(collection)
        except LocalStoreError:
            if not remote_ok:
                raise
            logger.error(f"Local {collection} cache unreadable; skipping write-through of {record.id}")
            return
        self._write_local({collection: _replace_or_append(current, record)}, remote_ok)

    def _save(self, collection: str, record: Any, operation: str) -> bool:
        """Upsert a record remotely (if allowed) and write it through to the cache."""
        ok, _ = self.session.call_remote(
            operation,
            lambda: self.session.remote.upsert(collection, record.id, record.to_dict()),
        )
        self._merge_local(collection, record, remote_ok=ok)
        return ok

    def _remove(self, collection: str, record_id: str, operation: str) -> bool:
        ok, _ = self.session.call_remote(
            operation,
            lambda: self.session.remote.delete(collection, record_id),
        )
        try:
            current = self.store.get(collection)
        except LocalStoreError:
            if not ok:
                raise
            logger.error(f"Local {collection} cache unreadable; skipping delete of {record_id}")
            return ok
        self._write_local({collection: [r for r in current if r.id != record_id]}, ok)
        return ok

    def _set_pointer(self, name: str, value: Optional[str]) -> None:
        try:
            self.store.set_pointer(name, value)
        except LocalStoreError as e:
            logger.error(f"Could not update local pointer {name}: {e}")

    def _get_pointer(self, name: str) -> Optional[str]:
        try:
            return self.store.get_pointer(name)
        except LocalStoreError as e:
            logger.error(f"Could not read local pointer {name}: {e}")
            return None

    def _publish(self) -> None:
        self.bus.publish()

    def _find_sos(self, sos_id: str) -> SOSRequest:
        for sos in self._read(SOS_COLLECTION):
            if sos.id == sos_id:
                return sos
        raise RecordNotFoundError(
            f"SOS {sos_id} not found",
            collection=SOS_COLLECTION,
            record_id=sos_id,
        )

    def _write_sos_remote(
        self,
        sos: SOSRequest,
        mutate: Callable[[SOSRequest], SOSRequest],
        operation: str,
    ) -> Tuple[bool, SOSRequest]:
        """
        Write a mutation of an SOS conditioned on the status it was read with.

        When another device changed the status in between, the remote record is
        re-read and the mutation applied to it again. If the loop never wins,
        the breaker is tripped so the local cache stays authoritative.

        Returns:
            (remote_ok, record as written). remote_ok is False when the remote
            was skipped or failed, in which case the record is the local one.

        Raises:
            InvalidTransitionError: the mutation is not allowed on the record
                another device wrote (that record is cached before raising)
        """
        updated = mutate(sos)
        if not self.session.allows_remote:
            return False, updated

        remote = self.session.remote
        for _ in range(STATUS_CLAIM_ATTEMPTS):
            ok, written = self.session.call_remote(
                operation,
                lambda: remote.compare_and_set(
                    SOS_COLLECTION, sos.id, "status", sos.status.value, updated.to_dict()
                ),
            )
            if not ok:
                return False, updated
            if written:
                return True, updated

            ok, current = self.session.call_remote(
                "fetch sos", lambda: remote.fetch_record(SOS_COLLECTION, sos.id)
            )
            if not ok:
                return False, updated

            if current is None:
                # Created while this device was offline; the remote never saw it
                ok, _ = self.session.call_remote(
                    operation, lambda: remote.upsert(SOS_COLLECTION, sos.id, updated.to_dict())
                )
                return ok, updated

            try:
                sos = SOSRequest.from_dict(current)
            except RecordParseError as e:
                logger.warning(f"Remote SOS {sos.id} is malformed, overwriting: {e}")
                ok, _ = self.session.call_remote(
                    operation, lambda: remote.upsert(SOS_COLLECTION, sos.id, updated.to_dict())
                )
                return ok, updated

            try:
                updated = mutate(sos)
            except InvalidTransitionError:
                self._merge_local(SOS_COLLECTION, sos, remote_ok=True)
                raise

        self.session.breaker.trip(
            operation,
            RemoteMirrorError(
                f"Could not write SOS {sos.id} after {STATUS_CLAIM_ATTEMPTS} conditional attempts",
                operation=operation,
                collection=SOS_COLLECTION,
            ),
        )
        return False, updated

    def _transition_remote(
        self,
        sos: SOSRequest,
        status: SOSStatus,
        rescuer_id: Optional[str],
    ) -> Tuple[bool, SOSRequest]:
        """
        Move an SOS out of ACTIVE on the remote with a conditional update.

        Raises:
            InvalidTransitionError: another device resolved the SOS first
        """
        def resolve(current: SOSRequest) -> SOSRequest:
            if current.status.is_terminal:
                raise InvalidTransitionError(
                    f"SOS {current.id} was already marked {current.status.value} by another device",
                    current=current.status.value,
                    requested=status.value,
                )
            return current.with_status(status, rescuer_id)

        return self._write_sos_remote(sos, resolve, f"claim sos {status.value}")

    def _save_sos(
        self,
        sos: SOSRequest,
        mutate: Callable[[SOSRequest], SOSRequest],
        operation: str,
    ) -> SOSRequest:
        remote_ok, updated = self._write_sos_remote(sos, mutate, operation)
        self._merge_local(SOS_COLLECTION, updated, remote_ok)
        return updated

    # =========================================================================
    # SOS OPERATIONS
    # =========================================================================

    def list_sos(self) -> List[SOSRequest]:
        """Get every SOS request (remote when reachable, otherwise cached)."""
        with self._lock:
            return self._read(SOS_COLLECTION)

    def get_sos(self, sos_id: str) -> SOSRequest:
        with self._lock:
            return self._find_sos(sos_id)

    def get_my_sos_id(self) -> Optional[str]:
        return self._get_pointer(MY_SOS_POINTER)

    def get_my_sos(self) -> Optional[SOSRequest]:
        """The SOS this device created, if it is still open."""
        with self._lock:
            my_id = self.get_my_sos_id()
            if not my_id:
                return None
            for sos in self._read(SOS_COLLECTION):
                if sos.id == my_id:
                    return sos
            return None

    def create_sos(self, draft: SOSDraft) -> SOSRequest:
        """
        Create a new ACTIVE SOS request owned by this device.

        Args:
            draft: Victim-supplied details

        Returns:
            The stored request (new id, empty messages)
        """
        with self._lock:
            record = draft.to_request(self._id_factory(), self._clock())
            self._save(SOS_COLLECTION, record, "create sos")
            self._set_pointer(MY_SOS_POINTER, record.id)
            logger.info(f"SOS {record.id} created (medical={record.is_medical_emergency})")
            self._publish()
            return record

    def update_sos_status(
        self,
        sos_id: str,
        status: SOSStatus,
        rescuer_id: Optional[str] = None,
    ) -> SOSRequest:
        """
        Resolve an SOS as RESCUED or SAFE.

        Raises:
            RecordNotFoundError: unknown id
            InvalidTransitionError: already resolved, or status is ACTIVE
        """
        status = SOSStatus(status)
        with self._lock:
            sos = self._find_sos(sos_id)
            check_transition(sos, status)

            remote_ok, updated = self._transition_remote(sos, status, rescuer_id)
            self._merge_local(SOS_COLLECTION, updated, remote_ok)

            if self.get_my_sos_id() == sos_id:
                self._set_pointer(MY_SOS_POINTER, None)

            logger.info(f"SOS {sos_id} marked {status.value}")
            self._publish()
            return updated

    def update_sos_details(self, sos_id: str, patch: SOSPatch) -> SOSRequest:
        """
        Edit the details of an ACTIVE SOS.

        Raises:
            RecordNotFoundError: unknown id
            InvalidTransitionError: the request is no longer ACTIVE
        """
        def edit(current: SOSRequest) -> SOSRequest:
            if current.status.is_terminal:
                raise InvalidTransitionError(
                    f"SOS {sos_id} is {current.status.value} and can no longer be edited",
                    current=current.status.value,
                )
            return patch.apply(current, self._clock())

        with self._lock:
            sos = self._find_sos(sos_id)
            updated = self._save_sos(sos, edit, "update sos details")
            self._publish()
            return updated

    def append_message(self, sos_id: str, message: ChatMessage) -> SOSRequest:
        """
        Append a chat message to an SOS thread.

        The write is conditioned on the status, so a message never reopens a
        request another device has just resolved.
        """
        with self._lock:
            sos = self._find_sos(sos_id)
            updated = self._save_sos(sos, lambda current: current.with_message(message), "append message")
            self._publish()
            return updated

    def delete_sos(self, sos_id: str) -> None:
        """Hard-delete an SOS request (administrative)."""
        with self._lock:
            self._find_sos(sos_id)
            self._remove(SOS_COLLECTION, sos_id, "delete sos")
            if self.get_my_sos_id() == sos_id:
                self._set_pointer(MY_SOS_POINTER, None)
            logger.info(f"SOS {sos_id} deleted")
            self._publish()

    # =========================================================================
    # RESCUER OPERATIONS
    # =========================================================================

    def list_rescuers(self) -> List[Rescuer]:
        """Get the full rescuer roster."""
        with self._lock:
            return self._read(RESCUERS_COLLECTION)

    def get_local_rescuer(self) -> Optional[Rescuer]:
        """The rescuer this device registered as, if any."""
        with self._lock:
            my_id = self._get_pointer(MY_RESCUER_POINTER)
            if not my_id:
                return None
            return find_rescuer(self._read(RESCUERS_COLLECTION), my_id)

    def is_valid_rescuer_id(self, rescuer_id: str) -> bool:
        with self._lock:
            return find_rescuer(self._read(RESCUERS_COLLECTION), rescuer_id) is not None

    def register_rescuer(
        self,
        username: Optional[str],
        name: str,
        phone: str,
    ) -> Rescuer:
        """
        Register a new rescuer with a freshly allocated three-digit id.

        Raises:
            AllocationError: no free ids left
        """
        with self._lock:
            roster = self._read(RESCUERS_COLLECTION)
            rescuer = Rescuer(
                id=allocate_rescuer_id(roster, self._rng),
                name=name,
                phone=phone,
                username=username or None,
                rescues_count=0,
            )
            self._save(RESCUERS_COLLECTION, rescuer, "register rescuer")
            self._set_pointer(MY_RESCUER_POINTER, rescuer.id)
            logger.info(f"Rescuer {rescuer.id} registered")
            self._publish()
            return rescuer

    def delete_rescuer(self, rescuer_id: str) -> None:
        """Remove a rescuer and their count entirely (administrative)."""
        with self._lock:
            if find_rescuer(self._read(RESCUERS_COLLECTION), rescuer_id) is None:
                raise RecordNotFoundError(
                    f"Rescuer {rescuer_id} not found",
                    collection=RESCUERS_COLLECTION,
                    record_id=rescuer_id,
                )
            self._remove(RESCUERS_COLLECTION, rescuer_id, "delete rescuer")
            if self._get_pointer(MY_RESCUER_POINTER) == rescuer_id:
                self._set_pointer(MY_RESCUER_POINTER, None)
            logger.info(f"Rescuer {rescuer_id} deleted")
            self._publish()

    # =========================================================================
    # RESCUE ATTRIBUTION
    # =========================================================================

    def attribute_rescue(
        self,
        sos_id: str,
        claimed_rescuer_id: Optional[str] = None,
    ) -> AttributionResult:
        """
        Mark an SOS RESCUED and credit exactly one rescuer.

        Remote ordering: claim the SOS (conditional on ACTIVE), make sure the
        credited rescuer row exists, then increment its count with a
        conditional update. If the claim succeeds and the credit does not, the
        result is flagged partial and logged so the missing credit can be
        reconciled.

        Args:
            sos_id: Request being resolved
            claimed_rescuer_id: Rescuer id typed in, or None for the sincere pool

        Raises:
            InvalidRescuerError: claimed id is not registered
            RecordNotFoundError: unknown SOS id
            InvalidTransitionError: SOS already resolved
        """
        with self._lock:
            roster = self._read(RESCUERS_COLLECTION)
            target, _ = resolve_credit_target(roster, claimed_rescuer_id)
            sos = self._find_sos(sos_id)
            rescued, updated_roster, credited = apply_rescue(sos, roster, target)

            remote_confirmed = False
            partial = False
            claimed, rescued = self._transition_remote(sos, SOSStatus.RESCUED, target.id)

            if claimed:
                remote = self.session.remote
                ok, _ = self.session.call_remote(
                    "ensure rescuer row",
                    lambda: remote.insert_if_absent(RESCUERS_COLLECTION, target.id, target.to_dict()),
                )
                if ok:
                    ok, value = self.session.call_remote(
                        "credit rescuer",
                        lambda: remote.increment_field(RESCUERS_COLLECTION, target.id, "rescuesCount"),
                    )
                    if ok:
                        try:
                            credited = Rescuer.from_dict(value)
                        except RecordParseError as e:
                            logger.warning(f"Remote rescuer {target.id} is malformed after credit: {e}")
                        updated_roster = _replace_or_append(updated_roster, credited)
                remote_confirmed = ok
                partial = not ok
                if partial:
                    logger.error(
                        f"Partial attribution: SOS {sos_id} marked RESCUED remotely but rescuer "
                        f"{target.id} was not credited there; local cache credited instead",
                        extra={"details": {"sos_id": sos_id, "rescuer_id": target.id}},
                    )

            try:
                sos_records = self.store.get(SOS_COLLECTION)
            except LocalStoreError:
                if not (remote_confirmed or partial):
                    raise
                logger.error(f"Local SOS cache unreadable; attribution of {sos_id} kept remote only")
            else:
                self._write_local(
                    {
                        SOS_COLLECTION: _replace_or_append(sos_records, rescued),
                        RESCUERS_COLLECTION: updated_roster,
                    },
                    remote_ok=remote_confirmed or partial,
                )

            if self.get_my_sos_id() == sos_id:
                self._set_pointer(MY_SOS_POINTER, None)

            logger.info(f"SOS {sos_id} rescued, credited to {credited.id} (now {credited.rescues_count})")
            self._publish()
            return AttributionResult(
                sos=rescued,
                rescuer=credited,
                remote_confirmed=remote_confirmed,
                partial=partial,
            )

    # =========================================================================
    # POLLING / STATUS
    # =========================================================================

    def refresh(self) -> SyncSnapshot:
        """
        Re-read everything a view shows.

        Intended to be called on a short timer, right after a local mutation,
        and whenever DATA_CHANGED is received.
        """
        with self._lock:
            sos = self._read(SOS_COLLECTION)
            rescuers = self._read(RESCUERS_COLLECTION)
            my_id = self.get_my_sos_id()
            my_sos = next((s for s in sos if s.id == my_id), None) if my_id else None
            return SyncSnapshot(
                sos=sos,
                my_sos=my_sos,
                rescuers=rank_rescuers(rescuers),
                online=self.is_online,
                refreshed_at=self._clock(),
            )

    def get_status(self) -> Dict[str, Any]:
        """
        Get comprehensive status information.

        Returns:
            Dict with status information for UI display
        """
        return {
            "online": self.is_online,
            "breaker": self.session.breaker.get_status_display(),
            "store": self.store.get_status_display(),
            "subscribers": self.bus.subscriber_count,
        }


def build_orchestrator(settings: FloodGuardSettings) -> SyncOrchestrator:
    """
    Wire an orchestrator from settings: session from the remote config, a
    local cache at the configured path and a fresh notification bus.
    """
    session = SyncSession.from_config(settings.remote)
    store = LocalCacheStore(settings.local_db_path)
    store.initialize()
    orchestrator = SyncOrchestrator(session, store, NotificationBus())
    logger.info(f"SyncOrchestrator ready. Online: {orchestrator.is_online}")
    return orchestrator
