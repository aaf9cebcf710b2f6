"""Wires stores, adapters and the session machine together from a Config."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from wakeorpay.adapters.notifications import LoopNotificationScheduler
from wakeorpay.adapters.sound import LoggingSoundController, SoundController
from wakeorpay.alarm.storage import AlarmStorage
from wakeorpay.config.schema import Config
from wakeorpay.escalation.base import EscalationGateway
from wakeorpay.escalation.factory import create_gateway
from wakeorpay.history.store import WakeUpHistoryStore
from wakeorpay.session.machine import AlarmSessionMachine
from wakeorpay.session.record import SessionRecordStore
from wakeorpay.session.router import TriggerRouter
from wakeorpay.verification.stop_code import StopCodeValidator


@dataclass
class Runtime:
    config: Config
    alarms: AlarmStorage
    history: WakeUpHistoryStore
    machine: AlarmSessionMachine
    router: TriggerRouter
    gateway: EscalationGateway
    scheduler: LoopNotificationScheduler = field(init=False)

    def __post_init__(self) -> None:
        self.scheduler = LoopNotificationScheduler(on_deliver=self.on_wake, clock=self.machine.now)

    async def start(self) -> None:
        """Bind to the running loop, recover any interrupted session, schedule alarms."""
        loop = asyncio.get_running_loop()
        self.router.bind_loop(loop)
        definitions = self.alarms.load_all()
        if self.machine.recover_on_launch(definitions):
            logger.info("Interrupted alarm resumed")
        count = self.scheduler.reschedule_all(definitions, self.machine.now())
        logger.info(f"WakeOrPay started with {count} scheduled alarms")

    def on_wake(self, key: str, payload: dict[str, Any]) -> None:
        """Scheduled time arrived: ring, then queue the alarm's next occurrence."""
        alarm_id = payload.get("alarmId", key)
        self.router.on_notification_delivered(alarm_id, payload)
        alarm = self.alarms.get(alarm_id)
        if alarm is not None:
            self.scheduler.reschedule_all([alarm], self.machine.now())

    def snooze(self, alarm_id: str) -> datetime | None:
        """Queue a one-shot re-ring of `alarm_id` after its snooze interval."""
        alarm = self.alarms.get(alarm_id)
        if alarm is None:
            logger.warning(f"Cannot snooze unknown alarm {alarm_id}")
            return None
        return self.scheduler.schedule_snooze(alarm, self.machine.now())

    async def stop(self) -> None:
        self.scheduler.cancel_all()
        await self.machine.drain()
        await self.gateway.close()


def build_runtime(config: Config, sound: SoundController | None = None) -> Runtime:
    data_dir = config.data_path
    alarms = AlarmStorage(data_dir)
    history = WakeUpHistoryStore(data_dir)
    gateway = create_gateway(config)

    machine = AlarmSessionMachine(
        sound=sound or LoggingSoundController(haptic_feedback=config.sound.haptic_feedback),
        gateway=gateway,
        records=SessionRecordStore(data_dir),
        validator=StopCodeValidator(
            scheme=config.verification.stop_code_scheme,
            universal_token=config.verification.universal_token,
        ),
        history=history,
        emergency_contact=config.escalation.emergency_contact,
        grace_window=config.verification.grace_window_seconds,
    )
    router = TriggerRouter(machine, alarm_lookup=alarms.get)

    return Runtime(
        config=config,
        alarms=alarms,
        history=history,
        machine=machine,
        router=router,
        gateway=gateway,
    )
