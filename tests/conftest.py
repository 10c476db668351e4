import os
import tempfile
from datetime import datetime, timedelta

import numpy as np
import pytest

# Keep logs and reports out of the working tree
os.environ.setdefault("OUTPUT_DIR", tempfile.mkdtemp(prefix="smartattend-test-"))

from attendance import AttendanceStateMachine, Directory, EventLog
from attendance.directory import SAMPLE_STUDENTS
from camera.stream_handler import AcquisitionError
from scanner.token_extractor import TokenDetection

CORNERS = ((10, 10), (60, 10), (60, 60), (10, 60))

class FakeFrameSource:
    """Frame source that hands out blank frames on demand."""

    def __init__(self, fail_with=None, frames_available=True):
        self.fail_with = fail_with
        self.frames_available = frames_available
        self.acquire_calls = 0
        self.release_calls = 0
        self.acquired = False
        self.reads = 0

    def acquire(self):
        self.acquire_calls += 1
        if self.fail_with:
            raise AcquisitionError(self.fail_with)
        self.acquired = True

    def release(self):
        self.release_calls += 1
        self.acquired = False

    def is_frame_ready(self):
        return self.acquired and self.frames_available

    def read_frame(self):
        if not self.is_frame_ready():
            return None
        self.reads += 1
        return np.zeros((120, 160, 3), dtype=np.uint8)

    def get_camera_info(self):
        return {"acquired": self.acquired}

class ScriptedExtractor:
    """Returns queued tokens in order; None means nothing decoded.

    Once the script is exhausted the last entry repeats.
    """

    def __init__(self, *tokens):
        self.tokens = list(tokens)
        self.calls = 0

    def __call__(self, frame):
        self.calls += 1
        if not self.tokens:
            return None
        token = self.tokens.pop(0) if len(self.tokens) > 1 else self.tokens[0]
        if token is None:
            return None
        return TokenDetection(text=token, corners=CORNERS)

class ManualClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 6, 8, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)
        return self.now

class RecordingNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.messages = []

    def send(self, contact, message):
        if self.fail:
            raise RuntimeError("gateway down")
        self.messages.append((contact, message))

class RecordingCue:
    def __init__(self, fail=False):
        self.fail = fail
        self.plays = 0

    def play(self):
        self.plays += 1
        if self.fail:
            raise OSError("no audio device")

@pytest.fixture
def clock():
    return ManualClock()

@pytest.fixture
def frame_source():
    return FakeFrameSource()

@pytest.fixture
def directory():
    return Directory(SAMPLE_STUDENTS)

@pytest.fixture
def event_log():
    return EventLog()

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def audio_cue():
    return RecordingCue()

@pytest.fixture
def machine(directory, event_log, notifier, audio_cue):
    return AttendanceStateMachine(directory, event_log, notifier=notifier, audio_cue=audio_cue)
