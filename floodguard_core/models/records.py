# =============================================================================
# floodguard_core/models/records.py
# SOS / Rescuer Record Types and Wire Format
# =============================================================================
"""
Typed records shared by the local cache, the remote mirror and the UI.

Records serialize to the camelCase JSON objects the other FloodGuard clients
already exchange, e.g.

    {"id": "seed-1", "name": "Ahmad Razak", "phone": "012-3456789",
     "landmark": "...", "status": "ACTIVE",
     "location": {"lat": 3.1412, "lng": 101.6865}, "timestamp": 1700000000000,
     "isMedicalEmergency": false, "messages": []}
"""

from __future__ import annotations
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# Collection names, used as local cache partitions and as remote row prefixes
SOS_COLLECTION = "sos"
RESCUERS_COLLECTION = "rescuers"
COLLECTIONS = (SOS_COLLECTION, RESCUERS_COLLECTION)

# Reserved rescuer credited when a rescue is not attributed to anyone
SINCERE_TEAM_ID = "000"
SINCERE_TEAM_NAME = "Sincere Rescue Team"


def now_ms() -> int:
    """Wall-clock time in milliseconds."""
    return int(time.time() * 1000)


class RecordParseError(ValueError):
    """Raised when a stored or fetched blob cannot be turned into a record."""


class SOSStatus(str, Enum):
    """SOS lifecycle. ACTIVE is the only non-terminal status."""
    ACTIVE = "ACTIVE"
    RESCUED = "RESCUED"
    SAFE = "SAFE"

    @property
    def is_terminal(self) -> bool:
        return self is not SOSStatus.ACTIVE


class SenderRole(str, Enum):
    VICTIM = "victim"
    RESCUER = "rescuer"


@dataclass(frozen=True)
class GeoLocation:
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[GeoLocation]:
        if not data:
            return None
        try:
            return cls(lat=float(data["lat"]), lng=float(data["lng"]))
        except (KeyError, TypeError, ValueError) as e:
            raise RecordParseError(f"Invalid location: {data!r}") from e


@dataclass(frozen=True)
class ChatMessage:
    """A single chat line embedded in an SOS request."""
    sender: SenderRole
    text: str
    timestamp: int = field(default_factory=now_ms)
    sender_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "sender": self.sender.value,
            "text": self.text,
            "timestamp": self.timestamp,
        }
        if self.sender_name is not None:
            data["senderName"] = self.sender_name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChatMessage:
        try:
            return cls(
                sender=SenderRole(data["sender"]),
                text=str(data.get("text", "")),
                timestamp=int(data.get("timestamp", 0)),
                sender_name=data.get("senderName"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RecordParseError(f"Invalid chat message: {data!r}") from e


@dataclass(frozen=True)
class SOSRequest:
    """An emergency signal sent by a victim."""
    id: str
    name: str
    phone: str
    landmark: str = ""
    status: SOSStatus = SOSStatus.ACTIVE
    location: Optional[GeoLocation] = None
    timestamp: int = field(default_factory=now_ms)
    rescuer_id: Optional[str] = None
    is_medical_emergency: bool = False
    message: Optional[str] = None
    messages: Tuple[ChatMessage, ...] = ()

    def with_status(
        self,
        status: SOSStatus,
        rescuer_id: Optional[str] = None,
    ) -> SOSRequest:
        """Return a copy in the new status; an absent rescuer_id keeps the old one."""
        return replace(self, status=status, rescuer_id=rescuer_id or self.rescuer_id)

    def with_message(self, message: ChatMessage) -> SOSRequest:
        return replace(self, messages=self.messages + (message,))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "landmark": self.landmark,
            "status": self.status.value,
            "location": self.location.to_dict() if self.location else None,
            "timestamp": self.timestamp,
            "isMedicalEmergency": self.is_medical_emergency,
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.rescuer_id is not None:
            data["rescuerId"] = self.rescuer_id
        if self.message is not None:
            data["message"] = self.message
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SOSRequest:
        if not isinstance(data, dict):
            raise RecordParseError(f"SOS record must be an object, got {type(data).__name__}")
        try:
            return cls(
                id=str(data["id"]),
                name=str(data.get("name", "")),
                phone=str(data.get("phone", "")),
                landmark=str(data.get("landmark") or ""),
                status=SOSStatus(data["status"]),
                location=GeoLocation.from_dict(data.get("location")),
                timestamp=int(data.get("timestamp", 0)),
                rescuer_id=data.get("rescuerId"),
                is_medical_emergency=bool(data.get("isMedicalEmergency", False)),
                message=data.get("message"),
                messages=tuple(ChatMessage.from_dict(m) for m in data.get("messages") or []),
            )
        except RecordParseError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise RecordParseError(f"Invalid SOS record: {e}") from e


@dataclass(frozen=True)
class Rescuer:
    """A registered responder, or the synthetic sincere pool."""
    id: str
    name: str
    phone: str = "-"
    username: Optional[str] = None
    rescues_count: int = 0

    def credited(self, amount: int = 1) -> Rescuer:
        return replace(self, rescues_count=self.rescues_count + amount)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "rescuesCount": self.rescues_count,
        }
        if self.username is not None:
            data["username"] = self.username
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Rescuer:
        if not isinstance(data, dict):
            raise RecordParseError(f"Rescuer record must be an object, got {type(data).__name__}")
        try:
            count = int(data.get("rescuesCount", 0))
            if count < 0:
                raise ValueError(f"negative rescuesCount {count}")
            return cls(
                id=str(data["id"]),
                name=str(data["name"]),
                phone=str(data.get("phone", "-")),
                username=data.get("username"),
                rescues_count=count,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RecordParseError(f"Invalid rescuer record: {e}") from e


@dataclass
class SOSDraft:
    """Victim-supplied fields for a new SOS request."""
    name: str
    phone: str
    landmark: str = ""
    location: Optional[GeoLocation] = None
    is_medical_emergency: bool = False
    message: Optional[str] = None

    def to_request(self, record_id: str, timestamp: int) -> SOSRequest:
        return SOSRequest(
            id=record_id,
            name=self.name,
            phone=self.phone,
            landmark=self.landmark,
            status=SOSStatus.ACTIVE,
            location=self.location,
            timestamp=timestamp,
            is_medical_emergency=self.is_medical_emergency,
            message=self.message,
            messages=(),
        )


@dataclass
class SOSPatch:
    """
    Partial update of an SOS request's editable details.

    Only fields that are not None are applied. Set clear_location to drop a
    stored location. Status, id, rescuer and messages are not editable
    through a patch.
    """
    name: Optional[str] = None
    phone: Optional[str] = None
    landmark: Optional[str] = None
    is_medical_emergency: Optional[bool] = None
    location: Optional[GeoLocation] = None
    message: Optional[str] = None
    clear_location: bool = False

    def __post_init__(self):
        if self.clear_location and self.location is not None:
            raise ValueError("A patch cannot both set and clear the location")

    def changes(self) -> Dict[str, Any]:
        changes = {
            name: value
            for name, value in self.__dict__.items()
            if name != "clear_location" and value is not None
        }
        if self.clear_location:
            changes["location"] = None
        return changes

    def apply(self, record: SOSRequest, timestamp: Optional[int] = None) -> SOSRequest:
        return replace(
            record,
            timestamp=timestamp if timestamp is not None else now_ms(),
            **self.changes(),
        )


def parse_records(collection: str, values: List[Any]) -> List[Any]:
    """Parse a list of raw dicts for the given collection."""
    if not isinstance(values, list):
        raise RecordParseError(f"{collection} blob must be a list, got {type(values).__name__}")
    if collection == SOS_COLLECTION:
        return [SOSRequest.from_dict(v) for v in values]
    if collection == RESCUERS_COLLECTION:
        return [Rescuer.from_dict(v) for v in values]
    raise RecordParseError(f"Unknown collection: {collection}")
