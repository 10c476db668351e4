"""
Glue between the decode loop and the attendance state machine.
"""
import logging
import threading
from collections import deque
from typing import List, Optional, Callable

from .models import CandidateReading, ScanResult
from .state_machine import AttendanceStateMachine

logger = logging.getLogger(__name__)

class AttendancePipeline:
    """Feeds readings to the state machine in emission order and keeps the
    latest results for operator notices."""

    def __init__(self, state_machine: AttendanceStateMachine, max_recent_results: int = 50,
                 event_sink: Optional[Callable[[str, str, dict], None]] = None):
        self.state_machine = state_machine
        self.recent_results = deque(maxlen=max_recent_results)
        self.event_sink = event_sink
        self.outcome_counts = {}
        self._lock = threading.Lock()

    def __call__(self, reading: CandidateReading) -> ScanResult:
        return self.submit(reading)

    def submit(self, reading: CandidateReading) -> ScanResult:
        result = self.state_machine.process(reading)

        with self._lock:
            self.recent_results.appendleft(result)
            key = result.outcome.value
            self.outcome_counts[key] = self.outcome_counts.get(key, 0) + 1

        if self.event_sink is not None:
            entity_id = result.entity.entity_id if result.entity else reading.token
            try:
                self.event_sink(entity_id, result.outcome.value, {
                    'message': result.message,
                    'event': result.event.to_dict() if result.event else None
                })
            except Exception as e:
                logger.warning(f"Attendance event sink failed: {e}")

        return result

    def resize_recent_results(self, max_recent_results: int):
        with self._lock:
            if max_recent_results != self.recent_results.maxlen:
                self.recent_results = deque(self.recent_results, maxlen=max_recent_results)

    def get_recent_results(self, count: Optional[int] = None) -> List[ScanResult]:
        """Most recent first."""
        with self._lock:
            results = list(self.recent_results)
        return results if count is None else results[:count]

    def get_statistics(self) -> dict:
        with self._lock:
            return {
                'processed': sum(self.outcome_counts.values()),
                'outcomes': dict(self.outcome_counts)
            }
