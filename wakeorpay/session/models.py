"""Ringing-session state types."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field

from wakeorpay.alarm.models import AlarmDefinition


class SessionState(str, Enum):
    """Lifecycle of a ringing session."""
    IDLE = "idle"
    ACTIVE = "active"
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.SUCCESS, SessionState.FAILURE)


@dataclass
class AlarmSession:
    """
    The live record of one ringing-to-resolution episode.

    Only AlarmSessionMachine creates or mutates these. `deadline` is fixed
    when the session is created.
    """

    alarm: AlarmDefinition
    started_at: datetime
    deadline: datetime
    emergency_contact: str = ""
    state: SessionState = SessionState.ACTIVE
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    resolved_at: datetime | None = None

    @property
    def alarm_id(self) -> str:
        return self.alarm.id

    @property
    def elapsed_to_stop(self) -> timedelta | None:
        if self.state != SessionState.SUCCESS or self.resolved_at is None:
            return None
        return self.resolved_at - self.started_at


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the machine, handed to the UI layer."""

    state: SessionState
    alarm_id: str | None = None
    alarm_title: str | None = None
    started_at: datetime | None = None
    deadline: datetime | None = None
    resolved_at: datetime | None = None
    acknowledged: bool = False

    @property
    def elapsed_to_stop(self) -> timedelta | None:
        if self.state != SessionState.SUCCESS or not (self.started_at and self.resolved_at):
            return None
        return self.resolved_at - self.started_at

    def remaining(self, now: datetime) -> timedelta:
        """Time left in the grace window (zero outside an active session)."""
        if self.state != SessionState.ACTIVE or self.deadline is None:
            return timedelta(0)
        return max(self.deadline - now, timedelta(0))

    @property
    def result_dialog_visible(self) -> bool:
        return result_dialog_visible(self.state, self.acknowledged)


def result_dialog_visible(state: SessionState, acknowledged: bool) -> bool:
    """The success/failure notice shows for a terminal state until acknowledged."""
    return state.is_terminal and not acknowledged


class RecoveryRecord(BaseModel):
    """Durable marker written while a session is ringing."""

    alarm_id: str = Field(alias="currentAlarmId")
    started_at: datetime = Field(alias="alarmStartTime")

    model_config = {"populate_by_name": True}
