"""Restart-recovery record stores."""

import json
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from wakeorpay.errors import RecordCorruptError
from wakeorpay.session.models import RecoveryRecord
from wakeorpay.utils.helpers import ensure_dir, write_json_atomic


class RecordStore(ABC):
    """Key-value home for the `{currentAlarmId, alarmStartTime}` record."""

    @abstractmethod
    def write(self, record: RecoveryRecord) -> None:
        pass

    @abstractmethod
    def read(self) -> RecoveryRecord | None:
        """
        Return the stored record, or None if there is none.

        Raises:
            RecordCorruptError: If something is stored but cannot be decoded.
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove the record. Clearing an empty store is a no-op."""
        pass


class SessionRecordStore(RecordStore):
    """Record persisted as `session.json` in the data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = ensure_dir(data_dir)
        self.path = self.data_dir / "session.json"

    def write(self, record: RecoveryRecord) -> None:
        write_json_atomic(self.path, record.model_dump(by_alias=True, mode="json"))
        logger.debug(f"Recovery record written for alarm {record.alarm_id}")

    def read(self) -> RecoveryRecord | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return RecoveryRecord.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise RecordCorruptError(f"Unreadable recovery record at {self.path}: {e}") from e

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class MemoryRecordStore(RecordStore):
    """In-process store for tests and throwaway runs."""

    def __init__(self, record: RecoveryRecord | None = None):
        self.record = record

    def write(self, record: RecoveryRecord) -> None:
        self.record = record

    def read(self) -> RecoveryRecord | None:
        return self.record

    def clear(self) -> None:
        self.record = None
