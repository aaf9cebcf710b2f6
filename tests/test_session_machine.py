"""Tests for AlarmSessionMachine transitions."""

import asyncio
from datetime import timedelta

import pytest

from fakes import ALARM_ID, T0, RecordingGateway, RecordingSound
from wakeorpay.alarm.models import AlarmDefinition
from wakeorpay.history.store import WakeUpHistoryStore
from wakeorpay.session.machine import AlarmSessionMachine
from wakeorpay.session.models import SessionState
from wakeorpay.session.record import MemoryRecordStore

VALID = "WakeOrPay:Stop:Universal"


class TestBegin:

    @pytest.mark.asyncio
    async def test_begin_starts_active_session(self, machine, alarm, sound, records, gateway) -> None:
        assert machine.begin(alarm) is True

        assert machine.state == SessionState.ACTIVE
        assert machine.session.started_at == T0
        assert machine.session.deadline == T0 + timedelta(seconds=60)
        assert machine.timer_armed
        assert sound.is_playing
        assert records.read().alarm_id == ALARM_ID
        assert records.read().started_at == T0

        await machine.drain()
        assert gateway.calls == [("register", ALARM_ID, T0, "+15550100")]

    @pytest.mark.asyncio
    async def test_begin_while_active_is_rejected(self, machine, alarm, clock, sound, gateway) -> None:
        machine.begin(alarm)
        first = machine.session
        clock.advance(10)

        other = AlarmDefinition(title="Other")
        assert machine.begin(other) is False
        assert machine.begin(alarm) is False

        assert machine.session is first
        assert machine.session.deadline == T0 + timedelta(seconds=60)
        assert sound.calls == ["start"]
        await machine.drain()
        assert gateway.actions() == ["register"]

    @pytest.mark.asyncio
    async def test_begin_after_terminal_resets_first(self, machine, alarm, clock) -> None:
        machine.begin(alarm)
        machine.attempt_stop(VALID)
        clock.advance(3600)

        assert machine.begin(alarm) is True
        assert machine.state == SessionState.ACTIVE
        assert machine.session.started_at == T0 + timedelta(seconds=3600)

    @pytest.mark.asyncio
    async def test_state_is_active_before_register_resolves(self, sound, records, clock, alarm) -> None:
        gate = asyncio.Event()

        class SlowGateway(RecordingGateway):
            async def register(self, alarm_id, started_at, contact):
                await gate.wait()
                self._record("register", alarm_id, started_at, contact)

        gateway = SlowGateway()
        machine = AlarmSessionMachine(sound=sound, gateway=gateway, records=records, clock=clock)

        machine.begin(alarm)
        await asyncio.sleep(0)

        assert machine.state == SessionState.ACTIVE
        assert gateway.calls == []
        gate.set()
        await machine.drain()
        assert gateway.actions() == ["register"]


class TestStop:

    @pytest.mark.asyncio
    async def test_valid_code_stops_alarm(self, machine, alarm, clock, sound, records, gateway) -> None:
        machine.begin(alarm)
        clock.advance(45)

        assert machine.attempt_stop(VALID) is True

        assert machine.state == SessionState.SUCCESS
        assert machine.snapshot().elapsed_to_stop == timedelta(seconds=45)
        assert not machine.timer_armed
        assert not sound.is_playing
        assert records.read() is None
        await machine.drain()
        assert gateway.calls[-1] == ("cancel", ALARM_ID, T0)

    @pytest.mark.asyncio
    async def test_invalid_code_changes_nothing(self, machine, alarm, sound, gateway) -> None:
        machine.begin(alarm)

        assert machine.attempt_stop("not-a-code") is False
        assert machine.attempt_stop("") is False

        assert machine.state == SessionState.ACTIVE
        assert machine.timer_armed
        assert sound.is_playing
        await machine.drain()
        assert gateway.actions() == ["register"]

    @pytest.mark.asyncio
    async def test_stop_after_terminal_returns_false(self, machine, alarm) -> None:
        machine.begin(alarm)
        machine.attempt_stop(VALID)

        assert machine.attempt_stop(VALID) is False
        assert machine.state == SessionState.SUCCESS

        machine.reset_to_idle()
        machine.begin(alarm)
        machine.on_timer_expired()
        assert machine.attempt_stop(VALID) is False
        assert machine.state == SessionState.FAILURE

    @pytest.mark.asyncio
    async def test_stop_when_idle_returns_false(self, machine) -> None:
        assert machine.attempt_stop(VALID) is False
        assert machine.state == SessionState.IDLE

    @pytest.mark.asyncio
    async def test_mark_success_only_without_qr_requirement(self, machine, clock) -> None:
        strict = AlarmDefinition(title="Strict", qr_required=True)
        machine.begin(strict)
        assert machine.mark_success() is False
        assert machine.state == SessionState.ACTIVE

        machine.on_timer_expired()
        relaxed = AlarmDefinition(title="Nap", qr_required=False)
        machine.begin(relaxed)
        assert machine.mark_success() is True
        assert machine.state == SessionState.SUCCESS


class TestTimeout:

    @pytest.mark.asyncio
    async def test_expiry_fails_session_and_notifies_once(self, machine, alarm, clock, sound, records, gateway) -> None:
        machine.begin(alarm)
        clock.advance(60)

        assert machine.on_timer_expired() is True
        assert machine.on_timer_expired() is False

        assert machine.state == SessionState.FAILURE
        assert not sound.is_playing
        assert records.read() is None
        await machine.drain()
        assert gateway.actions().count("notify_timeout") == 1
        assert gateway.calls[-1] == ("notify_timeout", ALARM_ID, T0, "+15550100")

    @pytest.mark.asyncio
    async def test_expiry_after_success_is_noop(self, machine, alarm, gateway) -> None:
        machine.begin(alarm)
        session_id = machine.session.session_id
        machine.attempt_stop(VALID)

        assert machine.on_timer_expired(session_id) is False
        assert machine.state == SessionState.SUCCESS
        await machine.drain()
        assert "notify_timeout" not in gateway.actions()

    @pytest.mark.asyncio
    async def test_expiry_for_stale_session_is_ignored(self, machine, alarm) -> None:
        machine.begin(alarm)
        old_id = machine.session.session_id
        machine.attempt_stop(VALID)
        machine.begin(alarm)

        assert machine.on_timer_expired(old_id) is False
        assert machine.state == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_real_timer_drives_failure(self, sound, gateway, records, alarm) -> None:
        machine = AlarmSessionMachine(sound=sound, gateway=gateway, records=records, grace_window=0.02)
        machine.begin(alarm)

        await asyncio.sleep(0.1)
        await machine.drain()

        assert machine.state == SessionState.FAILURE
        assert gateway.actions() == ["register", "notify_timeout"]

    @pytest.mark.asyncio
    async def test_success_disarms_real_timer(self, sound, gateway, records, alarm) -> None:
        machine = AlarmSessionMachine(sound=sound, gateway=gateway, records=records, grace_window=0.05)
        machine.begin(alarm)
        machine.attempt_stop(VALID)

        await asyncio.sleep(0.15)
        await machine.drain()

        assert machine.state == SessionState.SUCCESS
        assert gateway.actions() == ["register", "cancel"]


class TestRaces:

    @pytest.mark.asyncio
    async def test_first_terminal_transition_wins(self, machine, alarm, gateway) -> None:
        """Whatever order stop and expiry arrive in, exactly one terminal state results."""
        for first, second in (("stop", "expire"), ("expire", "stop")):
            machine.begin(alarm)
            ops = {
                "stop": lambda: machine.attempt_stop(VALID),
                "expire": machine.on_timer_expired,
            }
            assert ops[first]() is True
            assert ops[second]() is False

            expected = SessionState.SUCCESS if first == "stop" else SessionState.FAILURE
            assert machine.state == expected
            machine.reset_to_idle()

        await machine.drain()
        assert gateway.actions() == ["register", "cancel", "register", "notify_timeout"]

    @pytest.mark.asyncio
    async def test_concurrent_triggers_on_loop(self, machine, alarm) -> None:
        loop = asyncio.get_running_loop()
        machine.begin(alarm)
        results = []
        for _ in range(5):
            loop.call_soon(lambda: results.append(("stop", machine.attempt_stop(VALID))))
            loop.call_soon(lambda: results.append(("expire", machine.on_timer_expired())))
            loop.call_soon(lambda: results.append(("begin", machine.begin(alarm))))

        await asyncio.sleep(0.01)

        assert results[0] == ("stop", True)
        assert [r for _, r in results[1:3]] == [False, True]  # expire rejected, begin resets a terminal session
        assert machine.state in (SessionState.ACTIVE, SessionState.SUCCESS, SessionState.FAILURE)


class TestReset:

    @pytest.mark.asyncio
    async def test_reset_rejected_while_active(self, machine, alarm) -> None:
        machine.begin(alarm)

        assert machine.reset_to_idle() is False
        assert machine.reset_to_idle() is False
        assert machine.state == SessionState.ACTIVE
        assert machine.timer_armed

    @pytest.mark.asyncio
    async def test_reset_rejected_when_idle(self, machine) -> None:
        assert machine.reset_to_idle() is False

    @pytest.mark.asyncio
    async def test_reset_from_terminal(self, machine, alarm) -> None:
        machine.begin(alarm)
        machine.on_timer_expired()

        assert machine.reset_to_idle() is True
        assert machine.state == SessionState.IDLE
        assert machine.session is None


class TestObservers:

    @pytest.mark.asyncio
    async def test_listeners_see_every_transition(self, machine, alarm) -> None:
        seen = []
        unsubscribe = machine.subscribe(lambda snap: seen.append(snap.state))

        machine.begin(alarm)
        machine.attempt_stop(VALID)
        machine.acknowledge()
        unsubscribe()
        machine.begin(alarm)

        assert seen == [
            SessionState.ACTIVE,
            SessionState.SUCCESS,
            SessionState.SUCCESS,
            SessionState.IDLE,
        ]

    @pytest.mark.asyncio
    async def test_acknowledge_returns_to_idle(self, machine, alarm) -> None:
        snapshots = []
        machine.subscribe(snapshots.append)

        machine.begin(alarm)
        assert machine.acknowledge() is False
        machine.attempt_stop(VALID)

        assert machine.acknowledge() is True
        assert machine.state == SessionState.IDLE
        assert machine.session is None
        assert snapshots[-2].state == SessionState.SUCCESS
        assert snapshots[-2].acknowledged is True
        assert snapshots[-2].result_dialog_visible is False
        assert snapshots[-1].state == SessionState.IDLE
        assert machine.acknowledge() is False

    @pytest.mark.asyncio
    async def test_acknowledge_after_failure(self, machine, alarm) -> None:
        machine.begin(alarm)
        machine.on_timer_expired()

        assert machine.acknowledge() is True
        assert machine.state == SessionState.IDLE
        assert machine.begin(alarm) is True

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_transition(self, machine, alarm) -> None:
        def bad(_):
            raise ValueError("ui crashed")

        machine.subscribe(bad)
        assert machine.begin(alarm) is True
        assert machine.attempt_stop(VALID) is True
        assert machine.state == SessionState.SUCCESS

    @pytest.mark.asyncio
    async def test_result_dialog_visibility_follows_state(self, machine, alarm) -> None:
        assert machine.snapshot().result_dialog_visible is False
        machine.begin(alarm)
        assert machine.snapshot().result_dialog_visible is False
        machine.attempt_stop(VALID)
        assert machine.snapshot().result_dialog_visible is True
        machine.acknowledge()
        assert machine.snapshot().result_dialog_visible is False

    @pytest.mark.asyncio
    async def test_remaining_counts_down_to_zero(self, machine, alarm, clock) -> None:
        machine.begin(alarm)
        clock.advance(20)
        assert machine.snapshot().remaining(clock()) == timedelta(seconds=40)
        clock.advance(100)
        assert machine.snapshot().remaining(clock()) == timedelta(0)


class TestFailureIsolation:

    @pytest.mark.asyncio
    async def test_relay_failures_do_not_affect_state(self, records, clock, alarm) -> None:
        gateway = RecordingGateway(fail=True)
        machine = AlarmSessionMachine(sound=RecordingSound(), gateway=gateway, records=records, clock=clock)

        machine.begin(alarm)
        await machine.drain()
        assert machine.state == SessionState.ACTIVE

        machine.on_timer_expired()
        await machine.drain()
        assert machine.state == SessionState.FAILURE
        assert gateway.actions() == ["register", "notify_timeout"]

    @pytest.mark.asyncio
    async def test_record_write_failure_does_not_block_begin(self, gateway, clock, alarm) -> None:
        class BrokenStore(MemoryRecordStore):
            def write(self, record):
                raise OSError("disk full")

        machine = AlarmSessionMachine(sound=RecordingSound(), gateway=gateway, records=BrokenStore(), clock=clock)
        assert machine.begin(alarm) is True
        assert machine.state == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_sound_failure_does_not_block_begin(self, gateway, records, clock, alarm) -> None:
        class BrokenSound(RecordingSound):
            def start(self, sound_name, volume):
                raise RuntimeError("no audio device")

        machine = AlarmSessionMachine(sound=BrokenSound(), gateway=gateway, records=records, clock=clock)
        assert machine.begin(alarm) is True
        assert machine.timer_armed

    def test_begin_without_event_loop_changes_nothing(self, machine, alarm, sound, records, gateway) -> None:
        assert machine.begin(alarm) is False
        assert machine.state == SessionState.IDLE
        assert machine.session is None
        assert sound.calls == []
        assert records.read() is None
        assert not machine.timer_armed
        assert gateway.calls == []


class TestHistory:

    @pytest.mark.asyncio
    async def test_outcomes_are_recorded(self, tmp_path, gateway, records, clock, alarm) -> None:
        history = WakeUpHistoryStore(tmp_path)
        machine = AlarmSessionMachine(
            sound=RecordingSound(), gateway=gateway, records=records, history=history, clock=clock,
        )

        machine.begin(alarm)
        clock.advance(45)
        machine.attempt_stop(VALID)
        machine.begin(alarm)
        machine.on_timer_expired()

        entries = history.load_all()
        assert [e.qr_code_scanned for e in entries] == [True, False]
        assert entries[0].time_to_wake_up == 45
        assert entries[0].alarm_id == ALARM_ID
