"""
Data types shared by the scanner and the attendance state machine.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

class AttendanceType(Enum):
    """Kinds of attendance events."""
    ARRIVAL = "ARRIVAL"
    DEPARTURE = "DEPARTURE"

class Outcome(Enum):
    """Result classification for every processed reading."""
    NEW_EVENT = "NEW_EVENT"
    SUPPRESSED_TOO_SOON = "SUPPRESSED_TOO_SOON"
    ALREADY_COMPLETE = "ALREADY_COMPLETE"
    UNKNOWN_TOKEN = "UNKNOWN_TOKEN"

@dataclass(frozen=True)
class Entity:
    """A registered student. The QR token on the card is the entity_id."""
    entity_id: str
    name: str
    group: str
    guardian_name: str
    guardian_phone: str
    photo_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.entity_id,
            'name': self.name,
            'grade': self.group,
            'parent_name': self.guardian_name,
            'parent_phone': self.guardian_phone,
            'photo_url': self.photo_url
        }

@dataclass(frozen=True)
class CandidateReading:
    """A decoded token and the local time it was captured."""
    token: str
    timestamp: datetime

@dataclass(frozen=True)
class AttendanceEvent:
    """Committed, immutable ARRIVAL or DEPARTURE record."""
    entity_id: str
    timestamp: datetime
    event_type: AttendanceType
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.event_id,
            'student_id': self.entity_id,
            'timestamp': self.timestamp.isoformat(),
            'type': self.event_type.value
        }

@dataclass
class ScanResult:
    """What the state machine decided for one reading."""
    outcome: Outcome
    reading: CandidateReading
    message: str
    entity: Optional[Entity] = None
    event: Optional[AttendanceEvent] = None

    @property
    def notice_type(self) -> str:
        return "success" if self.outcome is Outcome.NEW_EVENT else "info"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'outcome': self.outcome.value,
            'token': self.reading.token,
            'timestamp': self.reading.timestamp.isoformat(),
            'student_name': self.entity.name if self.entity else "Unknown",
            'message': self.message,
            'type': self.notice_type,
            'event': self.event.to_dict() if self.event else None
        }
