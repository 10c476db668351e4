"""
Guardian notifications for attendance events.

Dispatch is fire-and-forget: failures are logged here and never reach the
attendance state machine.
"""
import sys
import logging
import threading
from collections import deque
from datetime import datetime
from typing import Optional, List, Dict

import requests

logger = logging.getLogger(__name__)

class Notifier:
    """Sends a rendered message to a guardian contact."""

    def send(self, contact: str, message: str):
        raise NotImplementedError

class NullNotifier(Notifier):
    """Used when SMS dispatch is disabled."""

    def send(self, contact: str, message: str):
        logger.debug(f"SMS disabled, dropping message to {contact}")

class SmsNotifier(Notifier):
    """SMS simulation with an optional HTTP gateway.

    Every message is logged as an SMS simulation. When ``gateway_url`` is set
    the message is also POSTed as JSON ``{"to": ..., "body": ...}`` from a
    daemon thread.
    """

    def __init__(self, gateway_url: Optional[str] = None, timeout: float = 5.0,
                 history_size: int = 100):
        self.gateway_url = gateway_url
        self.timeout = timeout
        self.sent = deque(maxlen=history_size)
        self.failures = 0
        self._lock = threading.Lock()
        self._session = requests.Session() if gateway_url else None

    def send(self, contact: str, message: str):
        logger.info(f"[SMS SIMULATION] To: {contact}, Body: {message}")
        with self._lock:
            self.sent.append({
                'to': contact,
                'body': message,
                'timestamp': datetime.now().isoformat()
            })

        if self.gateway_url:
            threading.Thread(
                target=self._post, args=(contact, message), daemon=True
            ).start()

    def _post(self, contact: str, message: str):
        try:
            response = self._session.post(
                self.gateway_url,
                json={'to': contact, 'body': message},
                timeout=self.timeout
            )
            response.raise_for_status()
            logger.debug(f"SMS gateway accepted message to {contact}")
        except requests.RequestException as e:
            with self._lock:
                self.failures += 1
            logger.error(f"SMS gateway delivery to {contact} failed: {e}")

    def get_history(self) -> List[Dict]:
        with self._lock:
            return list(self.sent)

class AudioCue:
    """Success chime played when an event is committed."""

    def __init__(self, enabled: bool = True, stream=None):
        self.enabled = enabled
        self.stream = stream

    def play(self):
        if not self.enabled:
            return
        try:
            stream = self.stream or sys.stdout
            stream.write("\a")
            stream.flush()
        except (OSError, ValueError) as e:
            logger.debug(f"Audio cue failed: {e}")
