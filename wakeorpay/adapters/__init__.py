"""Platform capabilities the core depends on: playback and wake scheduling."""

from wakeorpay.adapters.notifications import LoopNotificationScheduler, NotificationScheduler
from wakeorpay.adapters.sound import LoggingSoundController, SoundController

__all__ = [
    "LoggingSoundController",
    "LoopNotificationScheduler",
    "NotificationScheduler",
    "SoundController",
]
