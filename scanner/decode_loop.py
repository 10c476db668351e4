"""
Continuous QR decode loop.

Samples the frame source while active and emits a candidate reading per
decoded token, throttled so that a card held steadily in front of the camera
produces one reading per cooldown window.
"""
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import numpy as np

from attendance.models import CandidateReading
from camera.stream_handler import AcquisitionError
from utils.config import config
from .token_extractor import QRTokenExtractor, TokenDetection, draw_token_outline

logger = logging.getLogger(__name__)

class ScannerState(Enum):
    """Lifecycle of one scanner activation."""
    INACTIVE = "inactive"
    STARTING = "starting"
    ACTIVE = "active"
    ERROR = "error"

class DecodeLoop:
    """Self-rescheduling decode cycle over an injectable frame source.

    The frame source must provide ``acquire()``, ``release()``,
    ``is_frame_ready()`` and ``read_frame()``. ``clock`` returns the current
    local time as a datetime.
    """

    def __init__(self, frame_source, on_reading: Callable[[CandidateReading], object],
                 extractor: Optional[Callable[[np.ndarray], Optional[TokenDetection]]] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 cooldown_seconds: Optional[float] = None,
                 cycle_interval: Optional[float] = None,
                 draw_outline: Optional[bool] = None):
        self.frame_source = frame_source
        self.on_reading = on_reading
        self.extractor = extractor or QRTokenExtractor()
        self.clock = clock
        self.cooldown_seconds = config.scanner.cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        self.cycle_interval = config.scanner.cycle_interval if cycle_interval is None else cycle_interval
        self.draw_outline = config.scanner.draw_outline if draw_outline is None else draw_outline

        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be non-negative")

        self.state = ScannerState.INACTIVE
        self.error_message: Optional[str] = None
        self.last_frame: Optional[np.ndarray] = None

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._generation = 0
        self._acquired = False

        self._last_token: Optional[str] = None
        self._last_emit_time: Optional[datetime] = None

        self.frames_processed = 0
        self.tokens_decoded = 0
        self.readings_emitted = 0
        self.duplicates_suppressed = 0

    @property
    def is_active(self) -> bool:
        return self.state is ScannerState.ACTIVE

    def activate(self, background: bool = True) -> bool:
        """Acquire the frame source and start cycling.

        Returns False when the camera cannot be acquired; the loop then stays
        in ERROR until activated again. With ``background=False`` no thread is
        started and the caller drives ``run_cycle()`` itself.
        """
        with self._lock:
            if self.state in (ScannerState.STARTING, ScannerState.ACTIVE):
                return True

            self.state = ScannerState.STARTING
            self.error_message = None

            try:
                self.frame_source.acquire()
            except AcquisitionError as e:
                self.state = ScannerState.ERROR
                self.error_message = str(e)
                logger.error(f"Scanner activation failed: {e}")
                return False

            self._acquired = True
            self._last_token = None
            self._last_emit_time = None
            self._stop_event.clear()
            self._generation += 1
            self.state = ScannerState.ACTIVE

            if background:
                self._thread = threading.Thread(target=self._run, name="decode-loop", daemon=True)
                self._thread.start()

        logger.info("Scanner activated")
        return True

    def deactivate(self):
        """Stop cycling and release the frame source. Safe to call repeatedly."""
        with self._lock:
            if self.state is ScannerState.INACTIVE:
                return

            self.state = ScannerState.INACTIVE
            self.error_message = None
            self._generation += 1
            self._stop_event.set()
            thread, self._thread = self._thread, None
            acquired, self._acquired = self._acquired, False

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)

        if acquired:
            self.frame_source.release()

        logger.info("Scanner deactivated")

    def set_active(self, active: bool) -> bool:
        if active:
            return self.activate()
        self.deactivate()
        return True

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"Error in decode cycle: {e}")
            self._stop_event.wait(self.cycle_interval)

    def run_cycle(self) -> Optional[CandidateReading]:
        """Run one decode cycle; returns the emitted reading, if any."""
        if self.state is not ScannerState.ACTIVE:
            return None

        generation = self._generation

        if not self.frame_source.is_frame_ready():
            return None

        frame = self.frame_source.read_frame()
        if frame is None:
            return None

        self.frames_processed += 1
        self.last_frame = frame

        detection = self.extractor(frame)
        if detection is None or not detection.text:
            return None

        self.tokens_decoded += 1
        now = self.clock()

        with self._lock:
            # Deactivated while this frame was being decoded
            if self.state is not ScannerState.ACTIVE or generation != self._generation:
                return None

            if not self._should_emit(detection.text, now):
                self.duplicates_suppressed += 1
                return None

            self._last_token = detection.text
            self._last_emit_time = now
            self.readings_emitted += 1

        reading = CandidateReading(token=detection.text, timestamp=now)

        if self.draw_outline:
            self._render_outline(frame, detection)

        try:
            self.on_reading(reading)
        except Exception as e:
            logger.error(f"Reading handler failed for {reading.token!r}: {e}")

        return reading

    def _should_emit(self, token: str, now: datetime) -> bool:
        if token != self._last_token or self._last_emit_time is None:
            return True
        return (now - self._last_emit_time).total_seconds() >= self.cooldown_seconds

    def _render_outline(self, frame: np.ndarray, detection: TokenDetection):
        try:
            annotated = frame.copy()
            draw_token_outline(
                annotated, detection.corners,
                color=config.scanner.outline_color,
                thickness=config.scanner.outline_thickness
            )
            self.last_frame = annotated
        except Exception as e:
            logger.debug(f"Could not draw token outline: {e}")

    def get_statistics(self) -> dict:
        return {
            'state': self.state.value,
            'error': self.error_message,
            'frames_processed': self.frames_processed,
            'tokens_decoded': self.tokens_decoded,
            'readings_emitted': self.readings_emitted,
            'duplicates_suppressed': self.duplicates_suppressed
        }

    def __enter__(self):
        self.activate()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.deactivate()
