"""
QR token extraction from camera frames.
"""
import cv2
import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

Point = Tuple[int, int]

@dataclass(frozen=True)
class TokenDetection:
    """Decoded token with its bounding quadrilateral.

    Corners are ordered top-left, top-right, bottom-right, bottom-left.
    """
    text: str
    corners: Tuple[Point, Point, Point, Point]

class QRTokenExtractor:
    """Wraps OpenCV's QR detector."""

    def __init__(self):
        self.detector = cv2.QRCodeDetector()

    def extract(self, frame: np.ndarray) -> Optional[TokenDetection]:
        """Return the token in the frame, or None when nothing decodes."""
        if frame is None or frame.size == 0:
            return None

        try:
            data, points, _ = self.detector.detectAndDecode(frame)
        except cv2.error as e:
            logger.debug(f"QR decode failed: {e}")
            return None

        if not data or points is None:
            return None

        quad = np.asarray(points, dtype=np.float32).reshape(-1, 2)
        if quad.shape[0] != 4:
            return None

        corners = tuple((int(round(x)), int(round(y))) for x, y in quad)
        return TokenDetection(text=data, corners=corners)

    def __call__(self, frame: np.ndarray) -> Optional[TokenDetection]:
        return self.extract(frame)

def draw_token_outline(frame: np.ndarray, corners, color: Tuple[int, int, int] = (129, 185, 16),
                       thickness: int = 4) -> np.ndarray:
    """Draw the closed token outline onto the frame in place."""
    pts = np.array(corners, dtype=np.int32).reshape((-1, 1, 2))
    cv2.polylines(frame, [pts], isClosed=True, color=color, thickness=thickness)
    return frame
