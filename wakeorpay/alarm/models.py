"""Alarm definitions (Pydantic models with camelCase JSON aliases)."""

import uuid
from datetime import date, datetime, time, timedelta
from enum import IntEnum

from pydantic import BaseModel, Field


class Weekday(IntEnum):
    """ISO weekday numbering, matching `date.isoweekday()`."""
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7

    @property
    def short_name(self) -> str:
        return self.name[:3].capitalize()

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return cls(day.isoweekday())


UNIVERSAL_TOKEN = "Universal"


class AlarmDefinition(BaseModel):
    """A user-authored alarm and its schedule rule."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = "Alarm"
    time_of_day: time = Field(time(7, 0), alias="time")
    repeat_days: set[Weekday] = Field(default_factory=set, alias="repeatDays")
    enabled: bool = Field(True, alias="isEnabled")
    sound_name: str = Field("default", alias="soundName")
    volume: float = Field(0.8, ge=0.0, le=1.0)
    snooze_enabled: bool = Field(True, alias="snoozeEnabled")
    snooze_interval: int = Field(5, ge=1, le=60, alias="snoozeInterval")  # minutes
    qr_required: bool = Field(True, alias="qrCodeRequired")
    expected_stop_token: str = Field(UNIVERSAL_TOKEN, alias="expectedQR")
    created_at: datetime = Field(default_factory=datetime.now, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.now, alias="updatedAt")

    model_config = {"populate_by_name": True}

    @property
    def is_one_shot(self) -> bool:
        return not self.repeat_days

    @property
    def time_label(self) -> str:
        return self.time_of_day.strftime("%H:%M")

    @property
    def repeat_label(self) -> str:
        if not self.repeat_days:
            return "Once"
        return ", ".join(d.short_name for d in sorted(self.repeat_days))

    def fires_on(self, day: date) -> bool:
        return not self.repeat_days or Weekday.of(day) in self.repeat_days

    def next_fire_time(self, now: datetime) -> datetime | None:
        """
        Next time this alarm should ring, strictly after `now`.

        One-shot alarms ring at the next occurrence of their time of day.
        Repeating alarms ring on the next listed weekday.

        Args:
            now: Reference time; its tzinfo is carried onto the result.

        Returns:
            The next fire datetime, or None if the alarm is disabled.
        """
        if not self.enabled:
            return None

        today = now.date()
        for offset in range(0, 8):
            day = today + timedelta(days=offset)
            candidate = datetime.combine(day, self.time_of_day, tzinfo=now.tzinfo)
            if candidate > now and self.fires_on(day):
                return candidate
        return None

    def to_dict(self) -> dict:
        """Serialize with the on-disk (camelCase) keys."""
        data = self.model_dump(by_alias=True, mode="json")
        data["repeatDays"] = sorted(int(d) for d in self.repeat_days)
        return data


def snooze(alarm: AlarmDefinition, now: datetime) -> datetime | None:
    """One-shot wake time `snooze_interval` minutes after `now`, or None when snoozing is off."""
    if not alarm.snooze_enabled:
        return None
    return now + timedelta(minutes=alarm.snooze_interval)
