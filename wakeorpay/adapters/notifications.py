"""Wake-event scheduling."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Iterable

from loguru import logger

from wakeorpay.alarm.models import AlarmDefinition, snooze
from wakeorpay.utils.helpers import local_now


class NotificationScheduler(ABC):
    """Schedules "wake at time T with payload P" and cancels by alarm id."""

    @abstractmethod
    def schedule(self, alarm_id: str, fire_at: datetime, payload: dict[str, Any] | None = None) -> None:
        pass

    @abstractmethod
    def cancel(self, alarm_id: str) -> None:
        pass

    def reschedule_all(self, alarms: Iterable[AlarmDefinition], now: datetime) -> int:
        """Schedule the next fire of every enabled alarm. Returns how many were scheduled."""
        count = 0
        for alarm in alarms:
            self.cancel(alarm.id)
            fire_at = alarm.next_fire_time(now)
            if fire_at is None:
                continue
            self.schedule(alarm.id, fire_at, wake_payload(alarm, fire_at))
            count += 1
        return count

    def schedule_snooze(self, alarm: AlarmDefinition, now: datetime) -> datetime | None:
        """
        Ring `alarm` again after its snooze interval.

        Scheduled under `<alarm id>_snooze` so the regular next fire stays
        queued. Returns the snooze time, or None when the alarm has snoozing off.
        """
        fire_at = snooze(alarm, now)
        if fire_at is None:
            logger.info(f"Snooze is off for alarm {alarm.id}")
            return None
        self.schedule(snooze_key(alarm.id), fire_at, wake_payload(alarm, fire_at))
        return fire_at


def snooze_key(alarm_id: str) -> str:
    return f"{alarm_id}_snooze"


def wake_payload(alarm: AlarmDefinition, fire_at: datetime) -> dict[str, Any]:
    """Data delivered with a wake event; `alarmId` names the alarm to ring."""
    return {
        "alarmId": alarm.id,
        "snoozeEnabled": alarm.snooze_enabled,
        "snoozeInterval": alarm.snooze_interval,
        "qrCodeRequired": alarm.qr_required,
        "fireDate": fire_at.timestamp(),
    }


class LoopNotificationScheduler(NotificationScheduler):
    """
    Delivers wake events from the running asyncio loop.

    Stand-in for the OS notification center while the process is alive.
    `on_deliver(alarm_id, payload)` is called when a scheduled time arrives.
    """

    def __init__(
        self,
        on_deliver: Callable[[str, dict[str, Any]], None],
        clock: Callable[[], datetime] = local_now,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.on_deliver = on_deliver
        self._clock = clock
        self._loop = loop
        self._handles: dict[str, asyncio.TimerHandle] = {}

    @property
    def pending(self) -> list[str]:
        return list(self._handles)

    def schedule(self, alarm_id: str, fire_at: datetime, payload: dict[str, Any] | None = None) -> None:
        self.cancel(alarm_id)
        loop = self._loop or asyncio.get_running_loop()
        delay = max(0.0, (fire_at - self._clock()).total_seconds())
        self._handles[alarm_id] = loop.call_later(delay, self._deliver, alarm_id, payload or {})
        logger.info(f"Alarm {alarm_id} scheduled at {fire_at.isoformat()} (in {delay:.0f}s)")

    def cancel(self, alarm_id: str) -> None:
        handle = self._handles.pop(alarm_id, None)
        if handle is not None:
            handle.cancel()
            logger.debug(f"Alarm {alarm_id} notification removed")

    def cancel_all(self) -> None:
        for alarm_id in list(self._handles):
            self.cancel(alarm_id)

    def _deliver(self, alarm_id: str, payload: dict[str, Any]) -> None:
        self._handles.pop(alarm_id, None)
        try:
            self.on_deliver(alarm_id, payload)
        except Exception:
            logger.exception(f"Wake delivery for alarm {alarm_id} failed")
