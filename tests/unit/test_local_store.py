# =============================================================================
# tests/unit/test_local_store.py
# Unit Tests for LocalCacheStore
# =============================================================================

import json

import pytest

from floodguard_core.errors import LocalStoreError
from floodguard_core.models import SOSStatus
from floodguard_core.offline.local_store import (
    MY_RESCUER_POINTER,
    MY_SOS_POINTER,
    STORAGE_KEYS,
    LocalCacheStore,
)


class TestSeeding:
    """Test first-read seeding"""

    def test_absent_sos_collection_is_seeded(self, local_store, clock):
        records = local_store.get("sos")

        assert [r.id for r in records] == ["seed-1", "seed-2"]
        assert all(r.status is SOSStatus.ACTIVE for r in records)
        assert records[0].timestamp == clock.now - 3_600_000
        assert records[1].is_medical_emergency is True

    def test_absent_rescuers_seeded_with_pool(self, local_store):
        roster = {r.id: r for r in local_store.get("rescuers")}

        assert roster["000"].rescues_count == 42
        assert roster["117"].username == "chief117"
        assert roster["204"].rescues_count == 8

    def test_seed_is_persisted(self, local_store):
        local_store.get("sos")
        raw = local_store._read_raw(STORAGE_KEYS["sos"])

        assert raw is not None
        assert len(json.loads(raw)) == 2

    def test_empty_list_is_not_reseeded(self, local_store):
        """An explicitly emptied collection stays empty"""
        local_store.put("sos", [])
        assert local_store.get("sos") == []

    def test_corrupt_blob_is_reseeded(self, local_store):
        local_store.write_raw(STORAGE_KEYS["sos"], "{not json")
        records = local_store.get("sos")

        assert [r.id for r in records] == ["seed-1", "seed-2"]

    def test_undecodable_blob_is_reseeded(self, local_store):
        """A value sqlite cannot decode as UTF-8 counts as corrupt"""
        with local_store.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, CAST(x'80ff7b' AS TEXT))",
                [STORAGE_KEYS["sos"]],
            )

        assert [r.id for r in local_store.get("sos")] == ["seed-1", "seed-2"]
        assert len(json.loads(local_store._read_raw(STORAGE_KEYS["sos"]))) == 2

    def test_unparseable_record_is_reseeded(self, local_store):
        local_store.write_raw(STORAGE_KEYS["rescuers"], json.dumps([{"id": "1"}]))
        assert len(local_store.get("rescuers")) == 3


class TestCollections:
    """Test whole-collection writes"""

    def test_put_then_get(self, local_store, sample_sos):
        local_store.put("sos", [sample_sos])
        assert local_store.get("sos") == [sample_sos]

    def test_put_many_writes_both(self, local_store, sample_sos, sample_roster):
        local_store.put_many({"sos": [sample_sos], "rescuers": sample_roster[:1]})

        assert local_store.get("sos") == [sample_sos]
        assert local_store.get("rescuers") == sample_roster[:1]

    def test_unknown_collection(self, local_store):
        with pytest.raises(ValueError):
            local_store.get("boats")

    def test_data_survives_reopen(self, tmp_path, clock, sample_sos):
        path = tmp_path / "persist.db"
        first = LocalCacheStore(path, clock=clock)
        first.put("sos", [sample_sos])
        first.close()

        second = LocalCacheStore(path, clock=clock)
        try:
            assert second.get("sos") == [sample_sos]
        finally:
            second.close()

    def test_sqlite_failure_raises_local_store_error(self, local_store, sample_sos):
        conn = local_store._get_connection()
        conn.execute("DROP TABLE kv_store")
        conn.commit()

        with pytest.raises(LocalStoreError):
            local_store.put("sos", [sample_sos])


class TestPointers:
    """Test identity pointers"""

    def test_pointer_absent_by_default(self, local_store):
        assert local_store.get_pointer(MY_SOS_POINTER) is None

    def test_set_and_clear(self, local_store):
        local_store.set_pointer(MY_RESCUER_POINTER, "117")
        assert local_store.get_pointer(MY_RESCUER_POINTER) == "117"

        local_store.set_pointer(MY_RESCUER_POINTER, None)
        assert local_store.get_pointer(MY_RESCUER_POINTER) is None

    def test_pointer_stored_under_browser_key(self, local_store):
        local_store.set_pointer(MY_SOS_POINTER, "abc")
        assert json.loads(local_store._read_raw("floodguard_user_sos_id")) == "abc"

    def test_corrupt_pointer_reads_as_none(self, local_store):
        local_store.write_raw(STORAGE_KEYS[MY_SOS_POINTER], "{oops")
        assert local_store.get_pointer(MY_SOS_POINTER) is None

    def test_undecodable_pointer_reads_as_none(self, local_store):
        with local_store.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, CAST(x'80ff' AS TEXT))",
                [STORAGE_KEYS[MY_SOS_POINTER]],
            )

        assert local_store.get_pointer(MY_SOS_POINTER) is None


class TestStatus:

    def test_status_lists_written_keys(self, local_store):
        local_store.get("sos")
        status = local_store.get_status_display()

        assert "floodguard_sos_data" in status["keys"]
        assert status["path"].endswith("floodguard.db")
