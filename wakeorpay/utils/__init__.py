"""Utility functions for wakeorpay."""

from wakeorpay.utils.helpers import ensure_dir, local_now, utc_now

__all__ = ["ensure_dir", "local_now", "utc_now"]
