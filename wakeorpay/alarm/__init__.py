"""Alarm definitions and their storage."""

from wakeorpay.alarm.models import AlarmDefinition, Weekday, UNIVERSAL_TOKEN, snooze
from wakeorpay.alarm.storage import AlarmStorage

__all__ = [
    "AlarmDefinition",
    "AlarmStorage",
    "UNIVERSAL_TOKEN",
    "Weekday",
    "snooze",
]
