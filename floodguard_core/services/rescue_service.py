# =============================================================================
# floodguard_core/services/rescue_service.py
# Rescue Service - typed results over the Sync Orchestrator
# =============================================================================

from __future__ import annotations
from typing import Optional

from floodguard_core.auth import AdminGate
from floodguard_core.config import FloodGuardSettings
from floodguard_core.models import (
    ChatMessage,
    SenderRole,
    SOSDraft,
    SOSPatch,
    SOSStatus,
    now_ms,
)
from floodguard_core.offline import SyncOrchestrator, build_orchestrator
from floodguard_core import analytics
from .base_service import BaseService, ServiceResult


class RescueService(BaseService):
    """
    Service for victim, rescuer and admin flows.

    Every call returns a ServiceResult; engine exceptions are logged and
    turned into `error`/`error_code`.

    Usage:
        service = RescueService.from_settings(load_settings())
        result = service.create_sos(SOSDraft(name="A", phone="1"))
        if result:
            service.attribute_rescue(result.data.id, "117")
    """

    def __init__(self, orchestrator: SyncOrchestrator, gate: Optional[AdminGate] = None):
        super().__init__()
        self.orchestrator = orchestrator
        self.gate = gate or AdminGate()

    @classmethod
    def from_settings(cls, settings: FloodGuardSettings) -> RescueService:
        return cls(
            build_orchestrator(settings),
            AdminGate(settings.admin_username, settings.admin_password_hash),
        )

    # =========================================================================
    # VICTIM FLOWS
    # =========================================================================

    def create_sos(self, draft: SOSDraft) -> ServiceResult:
        return self.safe_execute("Creating SOS", self.orchestrator.create_sos, draft)

    def get_my_sos(self) -> ServiceResult:
        return self.safe_execute("Loading my SOS", self.orchestrator.get_my_sos)

    def update_sos_details(self, sos_id: str, patch: SOSPatch) -> ServiceResult:
        return self.safe_execute(
            f"Updating SOS {sos_id}", self.orchestrator.update_sos_details, sos_id, patch
        )

    def mark_safe(self, sos_id: str) -> ServiceResult:
        """Victim reports they are safe without a rescuer."""
        return self.safe_execute(
            f"Marking SOS {sos_id} safe",
            self.orchestrator.update_sos_status,
            sos_id,
            SOSStatus.SAFE,
        )

    def send_message(
        self,
        sos_id: str,
        sender: SenderRole,
        text: str,
        sender_name: Optional[str] = None,
    ) -> ServiceResult:
        text = (text or "").strip()
        if not text:
            return ServiceResult.fail("Message is empty", error_code="VALIDATION")
        message = ChatMessage(
            sender=SenderRole(sender),
            text=text,
            timestamp=now_ms(),
            sender_name=sender_name,
        )
        return self.safe_execute(
            f"Sending message on SOS {sos_id}", self.orchestrator.append_message, sos_id, message
        )

    # =========================================================================
    # RESCUER FLOWS
    # =========================================================================

    def list_sos(
        self,
        status: Optional[SOSStatus] = SOSStatus.ACTIVE,
        sort_by: str = "time",
        origin=None,
    ) -> ServiceResult:
        """
        SOS board as shown to rescuers: filtered, with this device's own SOS
        pinned on top.
        """
        def load():
            records = analytics.filter_by_status(self.orchestrator.list_sos(), status)
            return analytics.sort_sos(
                records,
                by=sort_by,
                origin=origin,
                pinned_id=self.orchestrator.get_my_sos_id(),
            )

        return self.safe_execute("Loading SOS board", load)

    def register_rescuer(self, name: str, phone: str, username: Optional[str] = None) -> ServiceResult:
        if not (name or "").strip() or not (phone or "").strip():
            return ServiceResult.fail("Name and phone are required", error_code="VALIDATION")
        return self.safe_execute(
            "Registering rescuer",
            self.orchestrator.register_rescuer,
            username,
            name.strip(),
            phone.strip(),
        )

    def get_local_rescuer(self) -> ServiceResult:
        return self.safe_execute("Loading local rescuer", self.orchestrator.get_local_rescuer)

    def attribute_rescue(self, sos_id: str, rescuer_id: Optional[str] = None) -> ServiceResult:
        result = self.safe_execute(
            f"Attributing rescue of SOS {sos_id}",
            self.orchestrator.attribute_rescue,
            sos_id,
            rescuer_id,
        )
        if result.success:
            result.metadata = {
                "remote_confirmed": result.data.remote_confirmed,
                "partial": result.data.partial,
            }
        return result

    def league(self, top: Optional[int] = None) -> ServiceResult:
        return self.safe_execute(
            "Building rescuer league",
            lambda: analytics.league_table(self.orchestrator.list_rescuers(), top=top),
        )

    # =========================================================================
    # ADMIN FLOWS
    # =========================================================================

    def admin_login(self, username: str, password: str) -> ServiceResult:
        if self.gate.login(username, password):
            return ServiceResult.ok(True)
        return ServiceResult.fail("Invalid username or password", error_code="AUTH_001")

    def admin_logout(self) -> ServiceResult:
        self.gate.logout()
        return ServiceResult.ok(True)

    def dashboard(self) -> ServiceResult:
        def load():
            self.gate.require("view the admin dashboard")
            snapshot = self.orchestrator.refresh()
            return {
                "stats": analytics.dashboard_stats(snapshot.sos),
                "league": analytics.league_table(snapshot.rescuers, top=5),
                "online": snapshot.online,
            }

        return self.safe_execute("Loading admin dashboard", load)

    def delete_sos(self, sos_id: str) -> ServiceResult:
        def delete():
            self.gate.require("delete an SOS request")
            self.orchestrator.delete_sos(sos_id)

        return self.safe_execute(f"Deleting SOS {sos_id}", delete)

    def delete_rescuer(self, rescuer_id: str) -> ServiceResult:
        def delete():
            self.gate.require("delete a rescuer")
            self.orchestrator.delete_rescuer(rescuer_id)

        return self.safe_execute(f"Deleting rescuer {rescuer_id}", delete)

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> ServiceResult:
        return self.safe_execute("Reading sync status", self.orchestrator.get_status)
