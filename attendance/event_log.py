"""
In-memory attendance event log.
"""
import bisect
import threading
from datetime import date
from typing import Iterator, List, Optional

from .models import AttendanceEvent

class EventLog:
    """Append-only log of attendance events, kept in timestamp order.

    Events with equal timestamps stay in insertion order. Nothing is ever
    removed or edited.
    """

    def __init__(self):
        self._events: List[AttendanceEvent] = []
        self._timestamps = []
        self._lock = threading.Lock()

    def append(self, event: AttendanceEvent):
        with self._lock:
            index = bisect.bisect_right(self._timestamps, event.timestamp)
            self._timestamps.insert(index, event.timestamp)
            self._events.insert(index, event)

    def events_for(self, entity_id: str, day: Optional[date] = None) -> List[AttendanceEvent]:
        """Events of one entity, optionally restricted to a calendar day."""
        with self._lock:
            return [
                event for event in self._events
                if event.entity_id == entity_id
                and (day is None or event.timestamp.date() == day)
            ]

    def events_on(self, day: date) -> List[AttendanceEvent]:
        with self._lock:
            return [event for event in self._events if event.timestamp.date() == day]

    def latest(self, count: int = 5) -> List[AttendanceEvent]:
        """Most recent events first."""
        with self._lock:
            return list(reversed(self._events[-count:])) if count > 0 else []

    def snapshot(self) -> List[AttendanceEvent]:
        with self._lock:
            return list(self._events)

    def __iter__(self) -> Iterator[AttendanceEvent]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
