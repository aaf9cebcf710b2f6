"""Storage for alarm definitions - JSON persistence."""

import json
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from wakeorpay.alarm.models import AlarmDefinition
from wakeorpay.utils.helpers import ensure_dir, write_json_atomic


class AlarmStorage:
    """Persistent storage for alarm definitions, one entry per id."""

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize storage with data directory."""
        if data_dir is None:
            data_dir = Path.home() / ".wakeorpay"

        self.data_dir = ensure_dir(data_dir)
        self.alarms_file = self.data_dir / "alarms.json"

    def load_all(self) -> List[AlarmDefinition]:
        """Load all alarm definitions. Invalid entries are skipped."""
        alarms: List[AlarmDefinition] = []

        if not self.alarms_file.exists():
            return alarms

        try:
            raw = json.loads(self.alarms_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load alarms: {e}")
            return alarms

        seen: set[str] = set()
        for data in raw.get("alarms", []):
            try:
                alarm = AlarmDefinition.model_validate(data)
            except ValidationError as e:
                logger.warning(f"Skipping invalid alarm entry: {e}")
                continue
            if alarm.id in seen:
                logger.warning(f"Skipping duplicate alarm id {alarm.id}")
                continue
            seen.add(alarm.id)
            alarms.append(alarm)

        return alarms

    def get(self, alarm_id: str) -> Optional[AlarmDefinition]:
        """Find alarm by ID."""
        for alarm in self.load_all():
            if alarm.id == alarm_id:
                return alarm
        return None

    def upsert(self, alarm: AlarmDefinition) -> None:
        """Insert or replace the definition with the same id."""
        alarms = [a for a in self.load_all() if a.id != alarm.id]
        alarm.updated_at = datetime.now()
        alarms.append(alarm)
        self._rewrite_all(alarms)
        logger.debug(f"Alarm {alarm.id} saved")

    def delete(self, alarm_id: str) -> bool:
        """Delete an alarm by ID."""
        alarms = self.load_all()
        remaining = [a for a in alarms if a.id != alarm_id]

        if len(remaining) < len(alarms):
            self._rewrite_all(remaining)
            logger.debug(f"Alarm {alarm_id} deleted")
            return True

        return False

    def toggle(self, alarm_id: str) -> Optional[AlarmDefinition]:
        """Flip the enabled flag. Returns the updated alarm, or None if unknown."""
        alarm = self.get(alarm_id)
        if alarm is None:
            return None
        alarm.enabled = not alarm.enabled
        self.upsert(alarm)
        return alarm

    def next_alarm(self, now: datetime) -> Optional[tuple[AlarmDefinition, datetime]]:
        """Earliest upcoming (alarm, fire time) among enabled alarms."""
        upcoming = []
        for alarm in self.load_all():
            fire_at = alarm.next_fire_time(now)
            if fire_at is not None:
                upcoming.append((alarm, fire_at))
        return min(upcoming, key=lambda pair: pair[1]) if upcoming else None

    def alarms_for_day(self, day: date) -> List[AlarmDefinition]:
        """Enabled alarms that ring on `day`, sorted by time of day."""
        alarms = [a for a in self.load_all() if a.enabled and a.fires_on(day)]
        alarms.sort(key=lambda a: a.time_of_day)
        return alarms

    def _rewrite_all(self, alarms: List[AlarmDefinition]) -> None:
        """Rewrite all alarms to file."""
        try:
            write_json_atomic(self.alarms_file, {"version": 1, "alarms": [a.to_dict() for a in alarms]})
        except OSError as e:
            logger.error(f"Failed to rewrite alarms file: {e}")
            raise
