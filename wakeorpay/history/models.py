"""Wake-up history entries and derived statistics."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class WakeUpHistoryEntry:
    """One resolved ringing session."""

    alarm_id: str
    alarm_title: str
    wake_up_time: datetime
    qr_code_scanned: bool
    time_to_wake_up: float = 0.0  # seconds from ring to stop
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    date: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "alarmId": self.alarm_id,
            "alarmTitle": self.alarm_title,
            "wakeUpTime": self.wake_up_time.isoformat(),
            "qrCodeScanned": self.qr_code_scanned,
            "timeToWakeUp": self.time_to_wake_up,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WakeUpHistoryEntry":
        return cls(
            id=data["id"],
            date=datetime.fromisoformat(data["date"]),
            alarm_id=data["alarmId"],
            alarm_title=data.get("alarmTitle", ""),
            wake_up_time=datetime.fromisoformat(data["wakeUpTime"]),
            qr_code_scanned=bool(data["qrCodeScanned"]),
            time_to_wake_up=float(data.get("timeToWakeUp", 0.0)),
        )

    @property
    def time_to_wake_up_label(self) -> str:
        minutes, seconds = divmod(int(self.time_to_wake_up), 60)
        return f"{minutes}m{seconds:02d}s"


@dataclass(frozen=True)
class WakeUpStatistics:
    total_wake_ups: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    average_time_to_wake_up: float = 0.0
    success_rate: float = 0.0

    @property
    def success_rate_label(self) -> str:
        return f"{self.success_rate * 100:.1f}%"
