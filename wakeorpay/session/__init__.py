"""Ringing-session types and the restart-recovery record.

The state machine itself lives in `session.machine`; event normalization in
`session.router`.
"""

from wakeorpay.session.models import (
    AlarmSession,
    RecoveryRecord,
    SessionSnapshot,
    SessionState,
    result_dialog_visible,
)
from wakeorpay.session.record import MemoryRecordStore, RecordStore, SessionRecordStore

__all__ = [
    "AlarmSession",
    "MemoryRecordStore",
    "RecordStore",
    "RecoveryRecord",
    "SessionRecordStore",
    "SessionSnapshot",
    "SessionState",
    "result_dialog_visible",
]
