"""
Attendance tracking for the QR check-in station.

This module provides:
- Student directory lookup by QR token
- Append-only, time-ordered attendance event log
- ARRIVAL/DEPARTURE state machine with a one-minute re-scan window
- Pipeline feeding decoded readings to the state machine
"""

from .models import (
    AttendanceEvent, AttendanceType, CandidateReading, Entity, Outcome, ScanResult
)
from .directory import Directory, default_directory
from .event_log import EventLog
from .state_machine import AttendanceStateMachine
from .pipeline import AttendancePipeline

__version__ = "1.0.0"

__all__ = [
    'AttendanceEvent',
    'AttendanceType',
    'CandidateReading',
    'Entity',
    'Outcome',
    'ScanResult',
    'Directory',
    'default_directory',
    'EventLog',
    'AttendanceStateMachine',
    'AttendancePipeline'
]
