# =============================================================================
# floodguard_core/models/__init__.py
# Record Types for FloodGuard
# =============================================================================

from .records import (
    SOS_COLLECTION,
    RESCUERS_COLLECTION,
    COLLECTIONS,
    SINCERE_TEAM_ID,
    SINCERE_TEAM_NAME,
    SOSStatus,
    SenderRole,
    GeoLocation,
    ChatMessage,
    SOSRequest,
    Rescuer,
    SOSDraft,
    SOSPatch,
    RecordParseError,
    parse_records,
    now_ms,
)

__all__ = [
    "SOS_COLLECTION",
    "RESCUERS_COLLECTION",
    "COLLECTIONS",
    "SINCERE_TEAM_ID",
    "SINCERE_TEAM_NAME",
    "SOSStatus",
    "SenderRole",
    "GeoLocation",
    "ChatMessage",
    "SOSRequest",
    "Rescuer",
    "SOSDraft",
    "SOSPatch",
    "RecordParseError",
    "parse_records",
    "now_ms",
]
