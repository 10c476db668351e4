"""
Configuration settings for the attendance station.
Covers camera, QR scanner, attendance rules, notifications and reporting.
"""
import os
import logging
from dataclasses import dataclass
from typing import Tuple, Optional
from pathlib import Path

# Configure logging for config module
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: Optional[int] = None  # None: pick from facing_mode
    resolution: Tuple[int, int] = (640, 480)
    fps: int = 30
    buffer_size: int = 1
    facing_mode: str = "environment"  # environment or user

@dataclass
class ScannerConfig:
    """QR decode loop configuration."""
    cooldown_seconds: float = 3.0  # same token is re-emitted only after this
    cycle_interval: float = 1.0 / 30
    draw_outline: bool = True
    outline_color: Tuple[int, int, int] = (129, 185, 16)  # Emerald (BGR)
    outline_thickness: int = 4

@dataclass
class AttendanceConfig:
    """Attendance event rules."""
    min_rescan_seconds: float = 60.0
    roster_file: str = "data/roster.csv"
    school_name: str = "SmartAttend"
    max_recent_results: int = 50

@dataclass
class NotificationConfig:
    """Guardian notification settings."""
    sms_enabled: bool = True
    sms_gateway_url: Optional[str] = None  # None: simulation only
    sms_timeout: float = 5.0
    audio_cue_enabled: bool = True

@dataclass
class SummaryConfig:
    """Narrative summary generation settings."""
    model: str = "gemini-2.5-flash"
    api_key: Optional[str] = None
    class_start: str = "08:30"

@dataclass
class LoggingConfig:
    """Logging and report output configuration."""
    log_level: str = "INFO"
    output_dir: str = "attendance_output"
    reports_dir: str = "attendance_output/reports"

@dataclass
class ApiConfig:
    """REST API settings."""
    host: str = "0.0.0.0"
    port: int = 8080

class Config:
    """Main configuration class with environment overrides and validation."""

    def __init__(self):
        self.camera = CameraConfig()
        self.scanner = ScannerConfig()
        self.attendance = AttendanceConfig()
        self.notifications = NotificationConfig()
        self.summary = SummaryConfig()
        self.logging = LoggingConfig()
        self.api = ApiConfig()

        # Load environment variables
        self._load_environment_variables()

        # Validate configuration
        self._validate_configuration()

        # Create necessary directories
        self._create_directories()

    def _load_environment_variables(self):
        """Load configuration from environment variables with proper error handling."""
        try:
            # Camera settings
            camera_id = os.getenv("CAMERA_ID")
            if camera_id:
                try:
                    self.camera.device_id = int(camera_id)
                except ValueError:
                    logger.warning(f"Invalid camera id: {camera_id}, using default")

            resolution_str = os.getenv("CAMERA_RESOLUTION")
            if resolution_str:
                try:
                    width, height = map(int, resolution_str.split('x'))
                    self.camera.resolution = (width, height)
                except ValueError:
                    logger.warning(f"Invalid resolution format: {resolution_str}, using default")

            facing = os.getenv("CAMERA_FACING")
            if facing:
                if facing.lower() in ("environment", "user"):
                    self.camera.facing_mode = facing.lower()
                else:
                    logger.warning(f"Invalid camera facing mode: {facing}, using default")

            # Throttles
            try:
                self.scanner.cooldown_seconds = float(
                    os.getenv("SCAN_COOLDOWN_SECONDS", self.scanner.cooldown_seconds))
                if self.scanner.cooldown_seconds < 0:
                    raise ValueError("Scan cooldown must be non-negative")
            except ValueError as e:
                logger.warning(f"Invalid scan cooldown, using default: {e}")
                self.scanner.cooldown_seconds = ScannerConfig.cooldown_seconds

            try:
                self.attendance.min_rescan_seconds = float(
                    os.getenv("RESCAN_SECONDS", self.attendance.min_rescan_seconds))
                if self.attendance.min_rescan_seconds < 0:
                    raise ValueError("Re-scan window must be non-negative")
            except ValueError as e:
                logger.warning(f"Invalid re-scan window, using default: {e}")
                self.attendance.min_rescan_seconds = AttendanceConfig.min_rescan_seconds

            self.attendance.roster_file = os.getenv("ROSTER_FILE", self.attendance.roster_file)
            self.attendance.school_name = os.getenv("SCHOOL_NAME", self.attendance.school_name)

            # Notifications
            self.notifications.sms_enabled = os.getenv("SMS_ENABLED", "true").lower() == "true"
            self.notifications.sms_gateway_url = os.getenv("SMS_GATEWAY_URL") or None
            self.notifications.audio_cue_enabled = os.getenv("AUDIO_CUE_ENABLED", "true").lower() == "true"

            # Summary
            self.summary.model = os.getenv("GEMINI_MODEL", self.summary.model)
            self.summary.api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("API_KEY")
            self.summary.class_start = os.getenv("CLASS_START", self.summary.class_start)

            # Logging
            log_level = os.getenv("LOG_LEVEL", self.logging.log_level).upper()
            if log_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
                self.logging.log_level = log_level
            else:
                logger.warning(f"Invalid log level: {log_level}, using default")

            output_dir = os.getenv("OUTPUT_DIR")
            if output_dir:
                self.logging.output_dir = output_dir
                self.logging.reports_dir = os.path.join(output_dir, "reports")

            try:
                self.api.port = int(os.getenv("API_PORT", self.api.port))
            except ValueError as e:
                logger.warning(f"Invalid API port, using default: {e}")
                self.api.port = ApiConfig.port

        except Exception as e:
            logger.error(f"Error loading environment variables: {e}")
            logger.info("Using default configuration values")

    def _validate_configuration(self):
        """Validate configuration values."""
        errors = []

        if self.camera.device_id is not None and self.camera.device_id < 0:
            errors.append("Camera device ID must be non-negative")

        if self.camera.fps <= 0:
            errors.append("Camera FPS must be positive")

        if any(dim <= 0 for dim in self.camera.resolution):
            errors.append("Camera resolution must have positive width and height")

        if self.scanner.cooldown_seconds < 0:
            errors.append("Scan cooldown seconds must be non-negative")

        if self.scanner.cycle_interval < 0:
            errors.append("Scanner cycle interval must be non-negative")

        if self.attendance.min_rescan_seconds < 0:
            errors.append("Re-scan window seconds must be non-negative")

        if self.attendance.max_recent_results < 1:
            errors.append("Recent results buffer must hold at least one result")

        if self.notifications.sms_timeout <= 0:
            errors.append("SMS timeout must be positive")

        if not _is_clock_time(self.summary.class_start):
            errors.append("Class start must be formatted as HH:MM")

        if not 0 < self.api.port < 65536:
            errors.append("API port must be between 1 and 65535")

        if errors:
            error_msg = "Configuration validation errors:\n" + "\n".join(f"- {error}" for error in errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

        logger.info("Configuration validation passed")

    def _create_directories(self):
        """Create required directories if they don't exist."""
        directories = [
            self.logging.output_dir,
            os.path.join(self.logging.output_dir, "logs"),
            self.logging.reports_dir,
        ]

        for directory in directories:
            try:
                Path(directory).mkdir(parents=True, exist_ok=True)
                logger.debug(f"Created/verified directory: {directory}")
            except Exception as e:
                logger.warning(f"Could not create directory {directory}: {e}")

    def get_effective_config(self) -> dict:
        """Get complete effective configuration as dictionary."""
        return {
            'camera': {
                'device_id': self.camera.device_id,
                'resolution': self.camera.resolution,
                'fps': self.camera.fps,
                'facing_mode': self.camera.facing_mode
            },
            'scanner': {
                'cooldown_seconds': self.scanner.cooldown_seconds,
                'cycle_interval': self.scanner.cycle_interval,
                'draw_outline': self.scanner.draw_outline
            },
            'attendance': self.get_attendance_config_dict(),
            'notifications': {
                'sms_enabled': self.notifications.sms_enabled,
                'sms_gateway_configured': self.notifications.sms_gateway_url is not None,
                'audio_cue_enabled': self.notifications.audio_cue_enabled
            },
            'summary': {
                'model': self.summary.model,
                'api_key_configured': bool(self.summary.api_key),
                'class_start': self.summary.class_start
            },
            'logging': {
                'log_level': self.logging.log_level,
                'output_dir': self.logging.output_dir,
                'reports_dir': self.logging.reports_dir
            }
        }

    def get_attendance_config_dict(self) -> dict:
        """Get attendance configuration as dictionary."""
        return {
            'min_rescan_seconds': self.attendance.min_rescan_seconds,
            'roster_file': self.attendance.roster_file,
            'school_name': self.attendance.school_name,
            'max_recent_results': self.attendance.max_recent_results
        }

    def update_attendance_config(self, **kwargs):
        """Update attendance configuration dynamically with validation.

        Components copy these values when they are built; a running station
        picks changes up through ``AttendanceStation.apply_attendance_config``.
        """
        for key, value in kwargs.items():
            if hasattr(self.attendance, key):
                if key == 'min_rescan_seconds' and value < 0:
                    logger.warning(f"Invalid re-scan window: {value}, skipping")
                    continue
                elif key == 'max_recent_results' and value < 1:
                    logger.warning(f"Invalid recent results size: {value}, skipping")
                    continue

                setattr(self.attendance, key, value)
                logger.info(f"Updated attendance config: {key} = {value}")
            else:
                logger.warning(f"Unknown attendance config key: {key}")

def _is_clock_time(value: str) -> bool:
    try:
        hours, minutes = map(int, value.split(':'))
    except (ValueError, AttributeError):
        return False
    return 0 <= hours < 24 and 0 <= minutes < 60

# Global configuration instance with error handling
try:
    config = Config()
    logger.info("Configuration initialized successfully")
except Exception as e:
    logger.error(f"Failed to initialize configuration: {e}")
    # Create minimal fallback configuration
    config = Config.__new__(Config)
    config.camera = CameraConfig()
    config.scanner = ScannerConfig()
    config.attendance = AttendanceConfig()
    config.notifications = NotificationConfig()
    config.summary = SummaryConfig()
    config.logging = LoggingConfig()
    config.api = ApiConfig()
    logger.warning("Using fallback configuration")

def validate_config():
    """Validate current configuration."""
    try:
        config._validate_configuration()
        return True
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        return False

def get_config_summary():
    """Get a summary of current configuration."""
    return {
        'camera_device': config.camera.device_id,
        'camera_facing': config.camera.facing_mode,
        'camera_resolution': config.camera.resolution,
        'scan_cooldown_seconds': config.scanner.cooldown_seconds,
        'min_rescan_seconds': config.attendance.min_rescan_seconds,
        'roster_file': config.attendance.roster_file,
        'sms_enabled': config.notifications.sms_enabled,
        'logging_level': config.logging.log_level
    }
