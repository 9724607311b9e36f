# =============================================================================
# tests/unit/test_remote_mirror.py
# Unit Tests for RemoteMirrorClient (Supabase mocked)
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest

from floodguard_core.config import RemoteConfig
from floodguard_core.errors import ConfigurationError, RemoteMirrorError
from floodguard_core.offline.remote_mirror import RemoteMirrorClient


def _response(data):
    response = MagicMock()
    response.data = data
    return response


class TestFetch:
    """Test collection and record reads"""

    def test_fetch_collection_returns_values(self, mock_supabase):
        execute = (
            mock_supabase.table.return_value.select.return_value.eq.return_value
            .order.return_value.range.return_value.execute
        )
        execute.return_value = _response([
            {"id": "sos_a", "value": {"id": "a"}},
            {"id": "sos_b", "value": {"id": "b"}},
        ])

        mirror = RemoteMirrorClient(mock_supabase, table="records")
        values = mirror.fetch_collection("sos")

        assert values == [{"id": "a"}, {"id": "b"}]
        mock_supabase.table.assert_called_with("records")
        mock_supabase.table.return_value.select.return_value.eq.assert_called_with("collection", "sos")

    def test_fetch_collection_paginates(self, mock_supabase):
        """Keeps requesting pages until one comes back short"""
        range_call = (
            mock_supabase.table.return_value.select.return_value.eq.return_value
            .order.return_value.range
        )
        range_call.return_value.execute.side_effect = [
            _response([{"id": "r_1", "value": {"id": "1"}}, {"id": "r_2", "value": {"id": "2"}}]),
            _response([{"id": "r_3", "value": {"id": "3"}}]),
        ]

        mirror = RemoteMirrorClient(mock_supabase)
        mirror.BATCH_SIZE = 2
        values = mirror.fetch_collection("rescuers")

        assert [v["id"] for v in values] == ["1", "2", "3"]
        assert [c.args for c in range_call.call_args_list] == [(0, 1), (2, 3)]

    def test_fetch_empty_collection(self, mock_supabase):
        assert RemoteMirrorClient(mock_supabase).fetch_collection("sos") == []

    def test_fetch_record_missing_returns_none(self, mock_supabase):
        (mock_supabase.table.return_value.select.return_value.eq.return_value
         .limit.return_value.execute.return_value) = _response([])

        assert RemoteMirrorClient(mock_supabase).fetch_record("sos", "nope") is None

    def test_fetch_record_uses_row_id(self, mock_supabase):
        select = mock_supabase.table.return_value.select.return_value
        select.eq.return_value.limit.return_value.execute.return_value = _response(
            [{"value": {"id": "117", "rescuesCount": 5}}]
        )

        value = RemoteMirrorClient(mock_supabase).fetch_record("rescuers", "117")

        assert value["rescuesCount"] == 5
        select.eq.assert_called_with("id", "rescuers_117")

    def test_client_error_becomes_remote_mirror_error(self, mock_supabase):
        mock_supabase.table.side_effect = ConnectionError("network unreachable")

        with pytest.raises(RemoteMirrorError) as exc_info:
            RemoteMirrorClient(mock_supabase).fetch_collection("sos")

        assert exc_info.value.details["operation"] == "fetch"
        assert exc_info.value.details["collection"] == "sos"


class TestWrites:
    """Test upserts, conditional updates and deletes"""

    def test_upsert_row_shape(self, mock_supabase):
        RemoteMirrorClient(mock_supabase).upsert("sos", "abc", {"id": "abc"})

        mock_supabase.table.return_value.upsert.assert_called_once_with(
            {"id": "sos_abc", "collection": "sos", "value": {"id": "abc"}},
            on_conflict="id",
        )

    def test_insert_if_absent_ignores_duplicates(self, mock_supabase):
        RemoteMirrorClient(mock_supabase).insert_if_absent("rescuers", "000", {"id": "000"})

        _, kwargs = mock_supabase.table.return_value.upsert.call_args
        assert kwargs["ignore_duplicates"] is True

    def test_compare_and_set_filters_on_field(self, mock_supabase):
        update = mock_supabase.table.return_value.update
        update.return_value.eq.return_value.eq.return_value.execute.return_value = _response([{"id": "sos_a"}])

        ok = RemoteMirrorClient(mock_supabase).compare_and_set("sos", "a", "status", "ACTIVE", {"id": "a"})

        assert ok is True
        update.return_value.eq.assert_called_with("id", "sos_a")
        update.return_value.eq.return_value.eq.assert_called_with("value->>status", "ACTIVE")

    def test_compare_and_set_lost_race(self, mock_supabase):
        update = mock_supabase.table.return_value.update
        update.return_value.eq.return_value.eq.return_value.execute.return_value = _response([])

        assert RemoteMirrorClient(mock_supabase).compare_and_set("sos", "a", "status", "ACTIVE", {}) is False

    def test_delete(self, mock_supabase):
        RemoteMirrorClient(mock_supabase).delete("rescuers", "204")
        mock_supabase.table.return_value.delete.return_value.eq.assert_called_once_with("id", "rescuers_204")


class TestIncrement:
    """Test the compare-and-set increment loop"""

    def test_increment_applies_once(self):
        mirror = RemoteMirrorClient(MagicMock())
        mirror.fetch_record = MagicMock(return_value={"id": "117", "rescuesCount": 5})
        mirror.compare_and_set = MagicMock(return_value=True)

        value = mirror.increment_field("rescuers", "117", "rescuesCount")

        assert value["rescuesCount"] == 6
        mirror.compare_and_set.assert_called_once_with(
            "rescuers", "117", "rescuesCount", 5, {"id": "117", "rescuesCount": 6}
        )

    def test_increment_retries_after_lost_race(self):
        """A concurrent writer bumps the count; the retry builds on the new value"""
        mirror = RemoteMirrorClient(MagicMock())
        mirror.fetch_record = MagicMock(side_effect=[
            {"id": "117", "rescuesCount": 5},
            {"id": "117", "rescuesCount": 6},
        ])
        mirror.compare_and_set = MagicMock(side_effect=[False, True])

        value = mirror.increment_field("rescuers", "117", "rescuesCount")

        assert value["rescuesCount"] == 7
        assert mirror.compare_and_set.call_count == 2

    def test_increment_gives_up(self):
        mirror = RemoteMirrorClient(MagicMock())
        mirror.fetch_record = MagicMock(return_value={"id": "117", "rescuesCount": 5})
        mirror.compare_and_set = MagicMock(return_value=False)

        with pytest.raises(RemoteMirrorError):
            mirror.increment_field("rescuers", "117", "rescuesCount")
        assert mirror.compare_and_set.call_count == RemoteMirrorClient.CAS_ATTEMPTS

    def test_increment_missing_record(self):
        mirror = RemoteMirrorClient(MagicMock())
        mirror.fetch_record = MagicMock(return_value=None)

        with pytest.raises(RemoteMirrorError):
            mirror.increment_field("rescuers", "999", "rescuesCount")


class TestFromConfig:
    """Test client construction"""

    def test_malformed_config_rejected(self):
        with pytest.raises(ConfigurationError):
            RemoteMirrorClient.from_config(RemoteConfig(url="not a url", key="k"))

    @patch("floodguard_core.offline.remote_mirror.create_client")
    def test_builds_client_with_table(self, create_client):
        config = RemoteConfig(url="https://demo.supabase.co", key="anon", table="flood_rows")

        mirror = RemoteMirrorClient.from_config(config)

        assert mirror.table_name == "flood_rows"
        assert create_client.call_args.args == ("https://demo.supabase.co", "anon")

    @patch("floodguard_core.offline.remote_mirror.create_client", side_effect=RuntimeError("bad key"))
    def test_client_failure_is_remote_error(self, create_client):
        config = RemoteConfig(url="https://demo.supabase.co", key="anon")

        with pytest.raises(RemoteMirrorError):
            RemoteMirrorClient.from_config(config)
