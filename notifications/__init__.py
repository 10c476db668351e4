"""Guardian notification module for the attendance station."""
from .dispatcher import Notifier, NullNotifier, SmsNotifier, AudioCue
__all__ = ['Notifier', 'NullNotifier', 'SmsNotifier', 'AudioCue']
