"""Wake-up history persistence and statistics."""

import json
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List

from loguru import logger

from wakeorpay.alarm.models import AlarmDefinition
from wakeorpay.history.models import WakeUpHistoryEntry, WakeUpStatistics
from wakeorpay.utils.helpers import ensure_dir, write_json_atomic


class WakeUpHistoryStore:
    """JSON-backed list of history entries (`history.json`)."""

    def __init__(self, data_dir: Path):
        self.data_dir = ensure_dir(data_dir)
        self.path = self.data_dir / "history.json"

    def load_all(self) -> List[WakeUpHistoryEntry]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load wake-up history: {e}")
            return []

        entries = []
        for data in raw:
            try:
                entries.append(WakeUpHistoryEntry.from_dict(data))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid history entry: {e}")
        return entries

    def add(self, entry: WakeUpHistoryEntry) -> WakeUpHistoryEntry:
        entries = self.load_all()
        entries.append(entry)
        write_json_atomic(self.path, [e.to_dict() for e in entries])
        return entry

    def add_success(self, alarm: AlarmDefinition, stopped_at: datetime, elapsed: timedelta) -> WakeUpHistoryEntry:
        entry = WakeUpHistoryEntry(
            alarm_id=alarm.id,
            alarm_title=alarm.title,
            wake_up_time=stopped_at,
            qr_code_scanned=True,
            date=stopped_at,
            time_to_wake_up=elapsed.total_seconds(),
        )
        logger.info(f"Wake-up recorded for {alarm.title!r} after {entry.time_to_wake_up:.0f}s")
        return self.add(entry)

    def add_failure(self, alarm: AlarmDefinition, at: datetime) -> WakeUpHistoryEntry:
        # A failed morning breaks the streak; time_to_wake_up stays 0.
        entry = WakeUpHistoryEntry(
            alarm_id=alarm.id,
            alarm_title=alarm.title,
            wake_up_time=at,
            qr_code_scanned=False,
            date=at,
        )
        logger.info(f"Missed wake-up recorded for {alarm.title!r}")
        return self.add(entry)

    def recent(self, limit: int = 10) -> List[WakeUpHistoryEntry]:
        return sorted(self.load_all(), key=lambda e: e.date, reverse=True)[:limit]

    def for_day(self, day: date) -> List[WakeUpHistoryEntry]:
        return [e for e in self.load_all() if e.date.date() == day]

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def statistics(self, today: date | None = None) -> WakeUpStatistics:
        return compute_statistics(self.load_all(), today or date.today())


def compute_statistics(entries: List[WakeUpHistoryEntry], today: date) -> WakeUpStatistics:
    """
    Derive streaks, averages and success rate from history.

    A day counts toward a streak when it holds at least one successful scan.
    The current streak counts back from `today`; the longest streak is the
    longest run of consecutive successful days anywhere in the history.
    """
    if not entries:
        return WakeUpStatistics()

    good_days = {e.date.date() for e in entries if e.qr_code_scanned}

    current = 0
    day = today
    while day in good_days:
        current += 1
        day -= timedelta(days=1)

    longest = 0
    run = 0
    previous: date | None = None
    for day in sorted(good_days):
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day

    timed = [e.time_to_wake_up for e in entries if e.qr_code_scanned and e.time_to_wake_up > 0]
    average = sum(timed) / len(timed) if timed else 0.0
    successes = sum(1 for e in entries if e.qr_code_scanned)

    return WakeUpStatistics(
        total_wake_ups=len(entries),
        current_streak=current,
        longest_streak=longest,
        average_time_to_wake_up=average,
        success_rate=successes / len(entries),
    )
