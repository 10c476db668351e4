"""Camera handling module for the attendance station."""
from .stream_handler import CameraStream, AcquisitionError
__all__ = ['CameraStream', 'AcquisitionError']
