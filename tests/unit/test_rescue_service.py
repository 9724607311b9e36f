# =============================================================================
# tests/unit/test_rescue_service.py
# Unit Tests for RescueService
# =============================================================================

import bcrypt
import pytest

from floodguard_core.auth import AdminGate
from floodguard_core.models import GeoLocation, SenderRole, SOSDraft, SOSPatch, SOSStatus
from floodguard_core.services import RescueService, ServiceResult


@pytest.fixture
def gate():
    return AdminGate("suarobanjir", bcrypt.hashpw(b"pw", bcrypt.gensalt(rounds=4)).decode())


@pytest.fixture
def service(offline_orchestrator, gate):
    return RescueService(offline_orchestrator, gate)


class TestServiceResult:

    def test_bool(self):
        assert ServiceResult.ok(1)
        assert not ServiceResult.fail("nope")


class TestVictimFlows:
    """Test victim operations through the service layer"""

    def test_create_and_get_my_sos(self, service):
        created = service.create_sos(SOSDraft(name="A", phone="1"))
        mine = service.get_my_sos()

        assert created.success
        assert mine.data.id == created.data.id

    def test_edit_after_resolution_fails_with_code(self, service):
        sos = service.create_sos(SOSDraft(name="A", phone="1")).data
        service.mark_safe(sos.id)

        result = service.update_sos_details(sos.id, SOSPatch(name="B"))

        assert not result.success
        assert result.error_code == "DATA_002"

    def test_empty_message_rejected(self, service):
        sos = service.create_sos(SOSDraft(name="A", phone="1")).data

        result = service.send_message(sos.id, SenderRole.VICTIM, "   ")

        assert result.error_code == "VALIDATION"

    def test_send_message(self, service):
        sos = service.create_sos(SOSDraft(name="A", phone="1")).data

        result = service.send_message(sos.id, "rescuer", " Hold on ", sender_name="Master Chief")

        assert result.data.messages[-1].text == "Hold on"
        assert result.data.messages[-1].sender is SenderRole.RESCUER


class TestRescuerFlows:
    """Test rescuer operations through the service layer"""

    def test_unknown_rescuer_becomes_failed_result(self, service):
        sos = service.create_sos(SOSDraft(name="A", phone="1")).data

        result = service.attribute_rescue(sos.id, "999")

        assert not result.success
        assert result.error_code == "ATTR_001"

    def test_attribution_metadata(self, service):
        sos = service.create_sos(SOSDraft(name="A", phone="1")).data

        result = service.attribute_rescue(sos.id, "117")

        assert result.success
        assert result.data.rescuer.rescues_count == 6
        assert result.metadata == {"remote_confirmed": False, "partial": False}

    def test_board_pins_my_sos(self, service):
        mine = service.create_sos(SOSDraft(name="A", phone="1", location=GeoLocation(3.2, 101.8))).data

        board = service.list_sos(sort_by="distance", origin=GeoLocation(3.1412, 101.6865)).data

        assert board[0].id == mine.id
        assert all(r.status is SOSStatus.ACTIVE for r in board)

    def test_register_requires_name_and_phone(self, service):
        assert service.register_rescuer("", "1").error_code == "VALIDATION"

    def test_register_and_league(self, service):
        rescuer = service.register_rescuer("Ali", "013", username="boatman").data
        league = service.league().data

        assert rescuer.id in set(league["id"])
        assert service.get_local_rescuer().data == rescuer


class TestAdminFlows:
    """Test the admin gate in front of deletes"""

    def test_delete_requires_login(self, service):
        sos = service.create_sos(SOSDraft(name="A", phone="1")).data

        result = service.delete_sos(sos.id)

        assert result.error_code == "AUTH_001"
        assert service.orchestrator.get_sos(sos.id)

    def test_delete_after_login(self, service):
        sos = service.create_sos(SOSDraft(name="A", phone="1")).data

        assert service.admin_login("suarobanjir", "pw").success
        assert service.delete_sos(sos.id).success
        assert service.delete_rescuer("204").success
        assert not service.orchestrator.is_valid_rescuer_id("204")

    def test_bad_login(self, service):
        assert service.admin_login("suarobanjir", "wrong").error_code == "AUTH_001"

    def test_logout_closes_gate(self, service):
        service.admin_login("suarobanjir", "pw")
        service.admin_logout()

        assert service.delete_rescuer("204").error_code == "AUTH_001"

    def test_dashboard(self, service):
        service.admin_login("suarobanjir", "pw")

        data = service.dashboard().data

        assert data["stats"]["total"] == 2
        assert data["online"] is False
        assert list(data["league"]["id"])[0] == "000"

    def test_status(self, service):
        assert service.get_status().data["online"] is False
