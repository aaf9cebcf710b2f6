"""Stop codes: the `<scheme>:Stop:<token>` strings encoded in QR codes."""

import uuid
from dataclasses import dataclass

from loguru import logger

from wakeorpay.alarm.models import UNIVERSAL_TOKEN
from wakeorpay.errors import StopCodeFormatError
from wakeorpay.session.models import AlarmSession, SessionState

DEFAULT_SCHEME = "WakeOrPay"
STOP_MARKER = "Stop"


@dataclass(frozen=True)
class StopCode:
    scheme: str
    token: str

    def __str__(self) -> str:
        return f"{self.scheme}:{STOP_MARKER}:{self.token}"


def parse_stop_code(raw: str) -> StopCode:
    """
    Split a scanned string into scheme and token.

    Raises:
        StopCodeFormatError: If the string is not `<scheme>:Stop:<token>`
            with a non-empty scheme and token.
    """
    parts = raw.strip().split(":", 2)
    if len(parts) != 3 or parts[1] != STOP_MARKER:
        raise StopCodeFormatError(f"Not a stop code: {raw!r}")
    scheme, _, token = parts
    if not scheme or not token.strip():
        raise StopCodeFormatError(f"Stop code is missing scheme or token: {raw!r}")
    return StopCode(scheme=scheme, token=token.strip())


def make_stop_code(token: str = UNIVERSAL_TOKEN, scheme: str = DEFAULT_SCHEME) -> str:
    """Build the string to encode into a printed QR code."""
    return str(StopCode(scheme=scheme, token=token))


def _same_uuid(a: str, b: str) -> bool:
    try:
        return uuid.UUID(a) == uuid.UUID(b)
    except ValueError:
        return False


class StopCodeValidator:
    """
    Decides whether a scanned code stops the session that is ringing.

    Validation reads the session but never changes it.
    """

    def __init__(self, scheme: str = DEFAULT_SCHEME, universal_token: str = UNIVERSAL_TOKEN):
        self.scheme = scheme
        self.universal_token = universal_token

    def validate(self, code: str | None, session: AlarmSession | None) -> bool:
        if not code or not code.strip():
            return False

        try:
            stop_code = parse_stop_code(code)
        except StopCodeFormatError as e:
            logger.debug(f"Rejected stop code: {e}")
            return False

        if stop_code.scheme != self.scheme:
            logger.debug(f"Rejected stop code with foreign scheme {stop_code.scheme!r}")
            return False

        if session is None or session.state != SessionState.ACTIVE:
            return False

        expected = session.alarm.expected_stop_token
        if expected == self.universal_token:
            return True

        if stop_code.token == expected:
            return True

        # Older printed codes carry the alarm id instead of a token.
        return _same_uuid(stop_code.token, session.alarm_id)
