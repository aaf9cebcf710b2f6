"""Events that drive the session machine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from wakeorpay.alarm.models import AlarmDefinition
from wakeorpay.utils.helpers import utc_now


class WakeEventKind(str, Enum):
    """Every way the outside world can poke a ringing session."""
    NOTIFICATION_DELIVERED = "notification_delivered"
    NOTIFICATION_TAPPED = "notification_tapped"
    MANUAL_TEST = "manual_test"
    STOP_CODE_SCANNED = "stop_code_scanned"
    MARK_SUCCESS = "mark_success"
    TIMER_EXPIRED = "timer_expired"

    @property
    def is_wake(self) -> bool:
        return self in (
            WakeEventKind.NOTIFICATION_DELIVERED,
            WakeEventKind.NOTIFICATION_TAPPED,
            WakeEventKind.MANUAL_TEST,
        )


@dataclass
class WakeEvent:
    """An event from a notification, the UI, the camera, or the timer."""

    kind: WakeEventKind
    alarm_id: str | None = None
    alarm: AlarmDefinition | None = None  # set for manual tests of unsaved alarms
    code: str | None = None
    received_at: datetime = field(default_factory=utc_now)
