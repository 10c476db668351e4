"""
Logging for the attendance station.

Two streams are kept: the station log (console plus ``logs/attendance_station.log``)
and the outcome log (``logs/attendance.log``) that records every processed scan.
Debug, info and warning records go through a background queue so the decode
thread never blocks on disk I/O; errors are written immediately.
"""
import json
import logging
import queue
import threading
from collections import Counter, deque
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional

STATION_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
OUTCOME_FORMAT = '%(asctime)s - ATTENDANCE - %(levelname)s - %(message)s'

def _file_handler(path: Path, formatter: logging.Formatter, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler

class StationLogger:
    """Station logger with a separate record of attendance outcomes."""

    def __init__(self, name: str = "smartattend", output_dir: Optional[str] = None,
                 level: Optional[str] = None, history_size: int = 1000):
        self.name = name
        self.output_dir, level_name = self._resolve_settings(output_dir, level)
        self.level = getattr(logging, level_name.upper(), logging.INFO)

        self.logger = logging.getLogger(name)
        self._configure_station_log()
        self.outcome_logger = self._configure_outcome_log()

        self._outcomes = deque(maxlen=history_size)
        self._outcomes_lock = threading.Lock()

        self._queue = queue.Queue(maxsize=1000)
        self._worker = threading.Thread(target=self._drain, name="log-writer", daemon=True)
        self._worker.start()

        self.logger.debug(f"Station logger writing to {Path(self.output_dir) / 'logs'}")

    @staticmethod
    def _resolve_settings(output_dir, level):
        # Imported lazily so the logger can be built before config is importable
        try:
            from utils.config import config
            return (output_dir or config.logging.output_dir,
                    level or config.logging.log_level)
        except ImportError:
            return output_dir or "attendance_output", level or "INFO"

    def _configure_station_log(self):
        self.logger.handlers.clear()
        self.logger.setLevel(self.level)
        self.logger.propagate = False

        formatter = logging.Formatter(STATION_FORMAT)
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        console.setLevel(self.level)
        self.logger.addHandler(console)

        try:
            log_path = Path(self.output_dir) / "logs" / "attendance_station.log"
            self.logger.addHandler(_file_handler(log_path, formatter, self.level))
        except OSError as e:
            self.logger.warning(f"Station log file unavailable, console only: {e}")

    def _configure_outcome_log(self) -> Optional[logging.Logger]:
        outcome_logger = logging.getLogger(f"{self.name}.outcomes")
        outcome_logger.handlers.clear()
        outcome_logger.setLevel(logging.INFO)
        outcome_logger.propagate = False

        try:
            log_path = Path(self.output_dir) / "logs" / "attendance.log"
            outcome_logger.addHandler(
                _file_handler(log_path, logging.Formatter(OUTCOME_FORMAT), logging.INFO)
            )
        except OSError as e:
            self.logger.warning(f"Attendance outcome log unavailable: {e}")
            return None

        return outcome_logger

    def set_level(self, level: str):
        """Change the level of the station log and all of its handlers."""
        self.level = getattr(logging, level.upper(), logging.INFO)
        self.logger.setLevel(self.level)
        for handler in self.logger.handlers:
            handler.setLevel(self.level)

    def _drain(self):
        while True:
            try:
                entry = self._queue.get(timeout=1.0)
            except queue.Empty:
                continue
            if entry is None:
                break
            level, message, kwargs = entry
            try:
                self.logger.log(level, message, **kwargs)
            except Exception as e:
                # Logging about a logging failure would loop
                print(f"Log writer error: {e}")

    def _enqueue(self, level: int, message: str, **kwargs):
        try:
            self._queue.put_nowait((level, message, kwargs))
        except queue.Full:
            self.logger.log(level, message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._enqueue(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._enqueue(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._enqueue(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs):
        self.logger.critical(message, **kwargs)

    def log_event(self, event_type: str, details: dict):
        """Log a station lifecycle event (SESSION_COMPLETE, ...) as one JSON line."""
        try:
            payload = json.dumps(details, default=str)
        except (TypeError, ValueError) as e:
            self.error(f"Could not serialize {event_type} details: {e}")
            payload = str(details)
        self.info(f"EVENT: {event_type} | {payload}")

    def log_attendance_event(self, entity_id: str, event_type: str, details: Dict = None):
        """Record one processed scan.

        ``event_type`` is the outcome name (NEW_EVENT, UNKNOWN_TOKEN, ...).
        Committed events are echoed to the station log as well.
        """
        record = {
            'timestamp': datetime.now().isoformat(),
            'entity_id': entity_id,
            'event_type': event_type,
            'details': details or {}
        }
        with self._outcomes_lock:
            self._outcomes.append(record)

        line = f"{entity_id} -> {event_type}"
        if details:
            line += f" | {json.dumps(details, default=str)}"

        if self.outcome_logger is not None:
            self.outcome_logger.info(line)
        if event_type == "NEW_EVENT":
            self.info(f"ATTENDANCE {line}")

    def get_recent_attendance_events(self, count: Optional[int] = None) -> List[Dict]:
        """Most recent outcome records, newest first."""
        with self._outcomes_lock:
            records = list(self._outcomes)
        records.reverse()
        return records if count is None else records[:max(count, 0)]

    def get_attendance_summary(self, day: Optional[date] = None) -> Dict:
        """Outcome counts for one calendar day (today by default)."""
        day = day or date.today()
        prefix = day.isoformat()
        with self._outcomes_lock:
            todays = [r for r in self._outcomes if r['timestamp'].startswith(prefix)]

        return {
            'date': prefix,
            'total_scans': len(todays),
            'unique_entities': len({r['entity_id'] for r in todays}),
            'outcome_counts': dict(Counter(r['event_type'] for r in todays))
        }

    def get_log_statistics(self) -> Dict:
        with self._outcomes_lock:
            retained = len(self._outcomes)
        return {
            'outcomes_retained': retained,
            'queue_size': self._queue.qsize(),
            'outcome_log_enabled': self.outcome_logger is not None
        }

    def shutdown(self):
        """Flush queued records and stop the writer thread."""
        self._queue.put(None)
        if self._worker.is_alive():
            self._worker.join(timeout=5.0)
        for handler in self.logger.handlers:
            handler.flush()

try:
    logger = StationLogger()
except Exception as e:
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger("smartattend_fallback")
    logger.error(f"Failed to initialize station logger: {e}")
