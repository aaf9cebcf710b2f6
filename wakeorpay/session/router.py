"""Normalizes trigger sources into the session machine's entry points."""

import asyncio
from typing import Any, Callable

from loguru import logger

from wakeorpay.alarm.models import AlarmDefinition
from wakeorpay.session.events import WakeEvent, WakeEventKind
from wakeorpay.session.machine import AlarmSessionMachine


class TriggerRouter:
    """
    Single entry point for notifications, UI buttons, and camera scans.

    `submit()` must run on the machine's loop; other threads use
    `submit_threadsafe()`.
    """

    def __init__(
        self,
        machine: AlarmSessionMachine,
        alarm_lookup: Callable[[str], AlarmDefinition | None],
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.machine = machine
        self.alarm_lookup = alarm_lookup
        self._loop = loop

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def on_notification_delivered(self, alarm_id: str, payload: dict[str, Any] | None = None) -> bool:
        return self.submit(WakeEvent(WakeEventKind.NOTIFICATION_DELIVERED, alarm_id=alarm_id))

    def on_notification_tapped(self, alarm_id: str) -> bool:
        return self.submit(WakeEvent(WakeEventKind.NOTIFICATION_TAPPED, alarm_id=alarm_id))

    def on_manual_test_trigger(self, alarm: AlarmDefinition) -> bool:
        return self.submit(WakeEvent(WakeEventKind.MANUAL_TEST, alarm_id=alarm.id, alarm=alarm))

    def on_stop_code(self, code: str) -> bool:
        return self.submit(WakeEvent(WakeEventKind.STOP_CODE_SCANNED, code=code))

    def submit(self, event: WakeEvent) -> bool:
        """Apply one event to the machine. Returns whether it changed state."""
        logger.debug(f"Event {event.kind.value} (alarm={event.alarm_id})")

        if event.kind.is_wake:
            alarm = event.alarm or (self.alarm_lookup(event.alarm_id) if event.alarm_id else None)
            if alarm is None:
                logger.warning(f"{event.kind.value}: unknown alarm {event.alarm_id}")
                return False
            return self.machine.begin(alarm)

        if event.kind == WakeEventKind.STOP_CODE_SCANNED:
            return self.machine.attempt_stop(event.code)

        if event.kind == WakeEventKind.MARK_SUCCESS:
            return self.machine.mark_success()

        if event.kind == WakeEventKind.TIMER_EXPIRED:
            return self.machine.on_timer_expired()

        logger.warning(f"Unhandled event kind {event.kind}")
        return False

    def submit_threadsafe(self, event: WakeEvent) -> None:
        """Queue an event onto the machine's loop from any thread."""
        if self._loop is None:
            raise RuntimeError("TriggerRouter has no loop bound; call bind_loop() first")
        self._loop.call_soon_threadsafe(self.submit, event)
