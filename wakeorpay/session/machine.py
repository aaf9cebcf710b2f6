"""The alarm session state machine.

Idle -> Active -> {Success, Failure}. Success and Failure are terminal; only
`reset_to_idle()` (or a fresh `begin()`, which resets first) leaves them.

Every transition method is synchronous and runs on the asyncio loop that owns
the machine, so transitions never interleave: whichever of a stop code or the
timer lands first wins and the other sees the terminal state and does
nothing. Network calls to the relay are scheduled as background tasks after
the local effects (sound, timer, recovery record) are complete.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Callable, Coroutine, Iterable

from loguru import logger

from wakeorpay.alarm.models import AlarmDefinition
from wakeorpay.adapters.sound import SoundController
from wakeorpay.errors import EscalationError, RecordCorruptError
from wakeorpay.escalation.base import EscalationGateway
from wakeorpay.history.store import WakeUpHistoryStore
from wakeorpay.session.models import AlarmSession, RecoveryRecord, SessionSnapshot, SessionState
from wakeorpay.session.record import RecordStore
from wakeorpay.utils.helpers import local_now
from wakeorpay.verification.stop_code import StopCodeValidator
from wakeorpay.verification.timer import VerificationTimer

DEFAULT_GRACE_WINDOW = 60.0  # seconds

SnapshotListener = Callable[[SessionSnapshot], None]


class AlarmSessionMachine:
    """Single authority over the (at most one) ringing session."""

    def __init__(
        self,
        sound: SoundController,
        gateway: EscalationGateway,
        records: RecordStore,
        validator: StopCodeValidator | None = None,
        timer_factory: Callable[[], VerificationTimer] = VerificationTimer,
        history: WakeUpHistoryStore | None = None,
        emergency_contact: str = "",
        grace_window: float = DEFAULT_GRACE_WINDOW,
        clock: Callable[[], datetime] = local_now,
    ):
        """
        Args:
            sound: Playback adapter.
            gateway: Relay client; failures are logged, never propagated.
            records: Durable store for the restart-recovery record.
            validator: Stop-code rule; defaults to the WakeOrPay scheme.
            timer_factory: Builds the grace-window timer.
            history: Optional wake-up history sink.
            emergency_contact: Phone number attached to escalation calls.
            grace_window: Seconds allowed to present a stop code.
            clock: Source of aware "now" datetimes.
        """
        self.sound = sound
        self.gateway = gateway
        self.records = records
        self.validator = validator or StopCodeValidator()
        self.history = history
        self.emergency_contact = emergency_contact
        self.grace_window = timedelta(seconds=grace_window)
        self._clock = clock
        self._timer = timer_factory()
        self._session: AlarmSession | None = None
        self._acknowledged = False
        self._listeners: list[SnapshotListener] = []
        self._pending: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session else SessionState.IDLE

    def now(self) -> datetime:
        return self._clock()

    @property
    def session(self) -> AlarmSession | None:
        return self._session

    @property
    def timer_armed(self) -> bool:
        return self._timer.armed

    def snapshot(self) -> SessionSnapshot:
        s = self._session
        if s is None:
            return SessionSnapshot(state=SessionState.IDLE)
        return SessionSnapshot(
            state=s.state,
            alarm_id=s.alarm_id,
            alarm_title=s.alarm.title,
            started_at=s.started_at,
            deadline=s.deadline,
            resolved_at=s.resolved_at,
            acknowledged=self._acknowledged,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call `listener` with a fresh snapshot after every transition. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def begin(self, alarm: AlarmDefinition) -> bool:
        """
        Start ringing `alarm`.

        Rejected (returns False) while another session is Active; a terminal
        session is reset first.
        """
        current = self._session
        if current is not None and current.state == SessionState.ACTIVE:
            logger.warning(
                f"Ignoring begin({alarm.id}): alarm {current.alarm_id} is already ringing"
            )
            return False
        if not self._timer.can_arm():
            logger.error(f"No running event loop; alarm {alarm.id} not started")
            return False
        if current is not None:
            logger.info(f"Clearing {current.state.value} session for alarm {current.alarm_id} before new alarm")
            self._clear()

        now = self._clock()
        session = AlarmSession(
            alarm=alarm,
            started_at=now,
            deadline=now + self.grace_window,
            emergency_contact=self.emergency_contact,
        )
        self._session = session
        self._acknowledged = False
        logger.info(f"⏰ Alarm {alarm.id} ({alarm.title!r}) ringing; stop before {session.deadline.isoformat()}")

        self._start_sound(alarm)
        self._timer.arm(self.grace_window.total_seconds(), partial(self.on_timer_expired, session.session_id))
        self._write_record(RecoveryRecord(alarm_id=alarm.id, started_at=now))
        self._publish()

        self._dispatch("register", self.gateway.register(alarm.id, now, session.emergency_contact))
        return True

    def attempt_stop(self, code: str | None) -> bool:
        """Stop the ringing alarm if `code` is valid for it."""
        session = self._session
        if session is None or session.state != SessionState.ACTIVE:
            logger.info(f"Stop code presented with no ringing alarm (state={self.state.value})")
            return False
        if not self.validator.validate(code, session):
            logger.info(f"Invalid stop code for alarm {session.alarm_id}")
            return False
        self._succeed(session)
        return True

    def mark_success(self) -> bool:
        """Stop without a code; only for alarms that do not require a QR scan."""
        session = self._session
        if session is None or session.state != SessionState.ACTIVE:
            logger.info(f"mark_success ignored (state={self.state.value})")
            return False
        if session.alarm.qr_required:
            logger.warning(f"Alarm {session.alarm_id} requires a QR scan; mark_success rejected")
            return False
        self._succeed(session)
        return True

    def on_timer_expired(self, session_id: str | None = None) -> bool:
        """
        Grace window ran out.

        A no-op unless the session is still Active (and, when given, is the
        session the timer was armed for).
        """
        session = self._session
        if session is None or session.state != SessionState.ACTIVE:
            logger.debug(f"Timer expiry ignored (state={self.state.value})")
            return False
        if session_id is not None and session_id != session.session_id:
            logger.debug(f"Timer expiry for stale session {session_id} ignored")
            return False

        now = self._clock()
        session.state = SessionState.FAILURE
        session.resolved_at = now
        logger.warning(f"Alarm {session.alarm_id} was not stopped in time; escalating")

        self._timer.disarm()
        self._stop_sound()
        self._clear_record()
        if self.history is not None:
            self._record_history(self.history.add_failure, session.alarm, now)
        self._publish()

        self._dispatch(
            "notify_timeout",
            self.gateway.notify_timeout(session.alarm_id, session.started_at, session.emergency_contact),
        )
        return True

    def reset_to_idle(self) -> bool:
        """Forget a finished session. Rejected unless the state is terminal."""
        if not self.state.is_terminal:
            logger.warning(f"reset_to_idle rejected in state {self.state.value}")
            return False
        self._clear()
        self._publish()
        return True

    def acknowledge(self) -> bool:
        """
        The user has seen the success/failure notice.

        Listeners get the acknowledged terminal snapshot, then the machine
        returns to Idle.
        """
        if not self.state.is_terminal:
            logger.debug(f"acknowledge ignored (state={self.state.value})")
            return False
        self._acknowledged = True
        self._publish()
        return self.reset_to_idle()

    # ------------------------------------------------------------------
    # Restart recovery
    # ------------------------------------------------------------------

    def recover_on_launch(self, alarms: Iterable[AlarmDefinition]) -> bool:
        """
        Resume a session that was ringing when the process died.

        Returns True when a session was rehydrated. A record that is stale,
        refers to an unknown alarm or cannot be read is discarded; the relay's
        own deadline covers a timeout that happened while we were not running.
        """
        if not self._timer.can_arm():
            logger.error("No running event loop; recovery postponed")
            return False

        try:
            record = self.records.read()
        except RecordCorruptError as e:
            logger.warning(f"Discarding recovery record: {e}")
            self._clear_record()
            return False

        if record is None:
            return False

        if self._session is not None and self._session.state == SessionState.ACTIVE:
            logger.warning("Recovery skipped: a session is already ringing")
            return False

        alarm = next((a for a in alarms if a.id == record.alarm_id), None)
        if alarm is None:
            logger.info(f"Discarding recovery record for unknown alarm {record.alarm_id}")
            self._clear_record()
            return False

        started_at = record.started_at
        if started_at.tzinfo is None:
            started_at = started_at.replace(tzinfo=timezone.utc)

        now = self._clock()
        elapsed = now - started_at
        if elapsed < timedelta(0) or elapsed >= self.grace_window:
            logger.info(
                f"Discarding stale recovery record for alarm {alarm.id} "
                f"(started {elapsed.total_seconds():.0f}s ago)"
            )
            self._clear_record()
            return False

        session = AlarmSession(
            alarm=alarm,
            started_at=started_at,
            deadline=started_at + self.grace_window,
            emergency_contact=self.emergency_contact,
        )
        self._session = session
        self._acknowledged = False
        remaining = (session.deadline - now).total_seconds()
        logger.info(f"Resumed ringing alarm {alarm.id}: {remaining:.0f}s left")

        self._start_sound(alarm)
        self._timer.arm(remaining, partial(self.on_timer_expired, session.session_id))
        self._publish()
        return True

    async def drain(self) -> None:
        """Wait for in-flight relay calls (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _succeed(self, session: AlarmSession) -> None:
        now = self._clock()
        session.state = SessionState.SUCCESS
        session.resolved_at = now
        elapsed = now - session.started_at
        logger.info(f"✅ Alarm {session.alarm_id} stopped after {elapsed.total_seconds():.0f}s")

        self._timer.disarm()
        self._stop_sound()
        self._clear_record()
        if self.history is not None:
            self._record_history(self.history.add_success, session.alarm, now, elapsed)
        self._publish()

        self._dispatch("cancel", self.gateway.cancel(session.alarm_id, session.started_at))

    def _clear(self) -> None:
        self._timer.disarm()
        self._session = None
        self._acknowledged = False

    def _start_sound(self, alarm: AlarmDefinition) -> None:
        try:
            self.sound.start(alarm.sound_name, alarm.volume)
        except Exception:
            logger.exception(f"Could not start sound for alarm {alarm.id}")

    def _stop_sound(self) -> None:
        try:
            self.sound.stop()
        except Exception:
            logger.exception("Could not stop alarm sound")

    def _write_record(self, record: RecoveryRecord) -> None:
        try:
            self.records.write(record)
        except OSError as e:
            logger.error(f"Failed to persist recovery record: {e}")

    def _clear_record(self) -> None:
        try:
            self.records.clear()
        except OSError as e:
            logger.error(f"Failed to clear recovery record: {e}")

    def _record_history(self, add: Callable[..., Any], *args: Any) -> None:
        try:
            add(*args)
        except OSError as e:
            logger.error(f"Failed to write wake-up history: {e}")

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener failed")

    def _dispatch(self, action: str, call: Coroutine[Any, Any, None]) -> None:
        """Run a relay call in the background; the transition does not wait for it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            call.close()
            logger.error(f"No running event loop; relay {action} not sent")
            return

        task = loop.create_task(self._run_relay_call(action, call))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_relay_call(self, action: str, call: Coroutine[Any, Any, None]) -> None:
        try:
            await call
        except EscalationError as e:
            logger.error(f"Relay {action} failed: {e}")
        except Exception:
            logger.exception(f"Unexpected error during relay {action}")
