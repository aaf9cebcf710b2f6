"""Shared error types for wakeorpay.

These are raised inside adapters and stores and handled at the boundary
where they occur. The session machine's public operations never let them
escape to callers.
"""


class WakeOrPayError(Exception):
    """Base error for wakeorpay."""


class StopCodeFormatError(WakeOrPayError):
    """Scanned string is not a `<scheme>:Stop:<token>` code."""


class EscalationError(WakeOrPayError):
    """Relay call failed (non-200 response or transport error)."""


class RecordCorruptError(WakeOrPayError):
    """Persisted restart-recovery record could not be decoded."""
