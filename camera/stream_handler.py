"""
Camera stream handler for the attendance station.
Acquires the camera exclusively and keeps the freshest frame available.
"""
import cv2
import time
import numpy as np
from typing import Optional, Tuple, List
import threading
from queue import Queue, Empty, Full

from utils.config import config
from utils.logger import logger

class AcquisitionError(RuntimeError):
    """The camera could not be opened (missing device or permission denied)."""

class CameraStream:
    """Threaded camera frame source.

    ``acquire()`` opens the device and starts a capture thread; only the
    latest frame is kept. ``release()`` stops the thread and frees the device.
    """

    def __init__(self, device_id: Optional[int] = None, resolution: Tuple[int, int] = None,
                 facing_mode: str = None):
        self.device_id = device_id if device_id is not None else config.camera.device_id
        self.resolution = resolution or config.camera.resolution
        self.facing_mode = facing_mode or config.camera.facing_mode
        self.fps = config.camera.fps

        self.cap: Optional[cv2.VideoCapture] = None
        self.active_device: Optional[int] = None
        self.frame_queue = Queue(maxsize=max(1, config.camera.buffer_size))
        self.running = False
        self.capture_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

        self._fps_counter = 0
        self._fps_start_time = time.time()
        self._current_fps = 0

    def _candidate_devices(self) -> List[int]:
        """Devices to try, in order of preference."""
        if self.device_id is not None:
            return [self.device_id]
        # Rear/world-facing cameras usually enumerate after the built-in one
        if self.facing_mode == "environment":
            return [1, 0]
        return [0, 1]

    def _open_device(self) -> cv2.VideoCapture:
        for device in self._candidate_devices():
            cap = cv2.VideoCapture(device)
            if cap.isOpened():
                self.active_device = device
                return cap
            cap.release()
        raise AcquisitionError(
            "Could not access camera. Please ensure permissions are granted."
        )

    def acquire(self):
        """Open the camera and start capturing. Raises AcquisitionError."""
        with self._lock:
            if self.running:
                logger.warning("Camera already acquired")
                return

            try:
                self.cap = self._open_device()
            except cv2.error as e:
                raise AcquisitionError(f"Could not access camera: {e}") from e

            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
            self.cap.set(cv2.CAP_PROP_FPS, self.fps)
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, config.camera.buffer_size)

            actual_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            logger.info(f"Camera {self.active_device} acquired ({self.facing_mode}): "
                        f"{actual_width}x{actual_height}")

            self.running = True
            self.capture_thread = threading.Thread(target=self._capture_frames, daemon=True)
            self.capture_thread.start()

    def _capture_frames(self):
        """Background thread for frame capture."""
        frame_time = 1.0 / self.fps

        while self.running:
            try:
                ret, frame = self.cap.read()
                if not ret:
                    logger.warning("Failed to capture frame")
                    time.sleep(frame_time)
                    continue

                # Keep only the freshest frame
                if self.frame_queue.full():
                    try:
                        self.frame_queue.get_nowait()
                    except Empty:
                        pass

                try:
                    self.frame_queue.put_nowait(frame)
                except Full:
                    pass

                time.sleep(frame_time)

            except Exception as e:
                logger.error(f"Error in capture thread: {e}")
                break

    def release(self):
        """Stop capturing and free the camera."""
        with self._lock:
            self.running = False

            if self.capture_thread and self.capture_thread.is_alive():
                self.capture_thread.join(timeout=2.0)
            self.capture_thread = None

            if self.cap:
                self.cap.release()
                self.cap = None

            while not self.frame_queue.empty():
                try:
                    self.frame_queue.get_nowait()
                except Empty:
                    break

        logger.info("Camera released")

    def is_frame_ready(self) -> bool:
        return self.running and not self.frame_queue.empty()

    def read_frame(self) -> Optional[np.ndarray]:
        """Take the latest frame, or None when no fresh frame is waiting."""
        if not self.running:
            return None

        try:
            frame = self.frame_queue.get_nowait()
        except Empty:
            return None

        self._update_fps()
        return frame

    def _update_fps(self):
        self._fps_counter += 1
        current_time = time.time()

        if current_time - self._fps_start_time >= 1.0:
            self._current_fps = self._fps_counter
            self._fps_counter = 0
            self._fps_start_time = current_time

    def get_fps(self) -> float:
        """Get current processing FPS."""
        return self._current_fps

    def get_camera_info(self) -> dict:
        if not self.cap:
            return {"device_id": self.device_id, "facing_mode": self.facing_mode, "acquired": False}

        return {
            "device_id": self.active_device,
            "facing_mode": self.facing_mode,
            "acquired": True,
            "width": int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            "height": int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            "fps": int(self.cap.get(cv2.CAP_PROP_FPS)),
            "processing_fps": self.get_fps()
        }

    def is_running(self) -> bool:
        return self.running and (self.cap is not None) and self.cap.isOpened()

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
