"""Shared fixtures for session machine tests."""

import pytest

from fakes import ALARM_ID, FakeClock, RecordingGateway, RecordingSound
from wakeorpay.alarm.models import AlarmDefinition
from wakeorpay.session.machine import AlarmSessionMachine
from wakeorpay.session.record import MemoryRecordStore


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sound():
    return RecordingSound()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def records():
    return MemoryRecordStore()


@pytest.fixture
def alarm():
    return AlarmDefinition(id=ALARM_ID, title="Gym")


@pytest.fixture
def machine(sound, gateway, records, clock):
    return AlarmSessionMachine(
        sound=sound,
        gateway=gateway,
        records=records,
        emergency_contact="+15550100",
        grace_window=60,
        clock=clock,
    )
