"""Wake-up history."""

from wakeorpay.history.models import WakeUpHistoryEntry, WakeUpStatistics
from wakeorpay.history.store import WakeUpHistoryStore, compute_statistics

__all__ = ["WakeUpHistoryEntry", "WakeUpHistoryStore", "WakeUpStatistics", "compute_statistics"]
