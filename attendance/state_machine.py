"""
Attendance event state machine.

Turns a candidate reading into at most one ARRIVAL or DEPARTURE per student
per day. The event log is the only state: each decision depends on the token,
the reading time, the directory and the student's events for that day.
"""
import logging
import threading
from datetime import datetime
from typing import Optional

from .directory import Directory
from .event_log import EventLog
from .models import (
    AttendanceEvent, AttendanceType, CandidateReading, Outcome, ScanResult, Entity
)

logger = logging.getLogger(__name__)

class AttendanceStateMachine:
    """Decides and commits attendance events."""

    def __init__(self, directory: Directory, event_log: EventLog, notifier=None,
                 audio_cue=None, min_rescan_seconds: float = 60.0,
                 school_name: str = "SmartAttend"):
        if min_rescan_seconds < 0:
            raise ValueError("min_rescan_seconds must be non-negative")

        self.directory = directory
        self.event_log = event_log
        self.notifier = notifier
        self.audio_cue = audio_cue
        self.min_rescan_seconds = min_rescan_seconds
        self.school_name = school_name

        # Read-decide-append must not interleave between readings
        self._lock = threading.Lock()

    def process(self, reading: CandidateReading) -> ScanResult:
        """Classify a reading and commit an event when one is due."""
        entity = self.directory.lookup(reading.token)
        if entity is None:
            logger.info(f"Unknown token scanned: {reading.token!r}")
            return ScanResult(
                outcome=Outcome.UNKNOWN_TOKEN,
                reading=reading,
                message=f"Invalid QR Code: {reading.token}"
            )

        with self._lock:
            today = self.event_log.events_for(entity.entity_id, reading.timestamp.date())
            has_arrived = any(e.event_type is AttendanceType.ARRIVAL for e in today)
            has_departed = any(e.event_type is AttendanceType.DEPARTURE for e in today)

            if not has_arrived:
                event_type = AttendanceType.ARRIVAL
            elif not has_departed:
                elapsed = (reading.timestamp - today[-1].timestamp).total_seconds()
                if elapsed < self.min_rescan_seconds:
                    logger.debug(f"Re-scan of {entity.entity_id} after {elapsed:.1f}s suppressed")
                    return ScanResult(
                        outcome=Outcome.SUPPRESSED_TOO_SOON,
                        reading=reading,
                        entity=entity,
                        message=f"Scanned again too soon. Wait {self.min_rescan_seconds:.0f} seconds between scans."
                    )
                event_type = AttendanceType.DEPARTURE
            else:
                return ScanResult(
                    outcome=Outcome.ALREADY_COMPLETE,
                    reading=reading,
                    entity=entity,
                    message="Already completed attendance for today."
                )

            event = AttendanceEvent(
                entity_id=entity.entity_id,
                timestamp=reading.timestamp,
                event_type=event_type
            )
            self.event_log.append(event)

        logger.info(f"Logged {event_type.value} for {entity.name} ({entity.entity_id}) at {reading.timestamp}")
        self._dispatch_side_effects(entity, event)

        return ScanResult(
            outcome=Outcome.NEW_EVENT,
            reading=reading,
            entity=entity,
            event=event,
            message=describe_event(event)
        )

    def set_rescan_window(self, seconds: float):
        if seconds < 0:
            raise ValueError("min_rescan_seconds must be non-negative")
        with self._lock:
            self.min_rescan_seconds = seconds

    def handle_token(self, token: str, timestamp: Optional[datetime] = None) -> ScanResult:
        """Process a token entered or simulated without the camera."""
        return self.process(CandidateReading(token=token, timestamp=timestamp or datetime.now()))

    def _dispatch_side_effects(self, entity: Entity, event: AttendanceEvent):
        """Audio cue and guardian SMS; failures never undo the event."""
        if self.audio_cue is not None:
            try:
                self.audio_cue.play()
            except Exception as e:
                logger.warning(f"Audio cue failed: {e}")

        if self.notifier is not None:
            try:
                self.notifier.send(entity.guardian_phone, self.render_guardian_message(entity, event))
            except Exception as e:
                logger.error(f"Guardian notification for {entity.entity_id} failed: {e}")

    def render_guardian_message(self, entity: Entity, event: AttendanceEvent) -> str:
        action = "arrived at" if event.event_type is AttendanceType.ARRIVAL else "left"
        return (f"Hello {entity.guardian_name}, this is {self.school_name}. "
                f"{entity.name} has {action} school safely at {event.timestamp.strftime('%H:%M:%S')}.")

def describe_event(event: AttendanceEvent) -> str:
    time_str = event.timestamp.strftime('%H:%M:%S')
    if event.event_type is AttendanceType.ARRIVAL:
        return f"Arrived at school at {time_str}"
    return f"Left school at {time_str}"
