"""Stop-code validation and the grace-window timer."""

from wakeorpay.verification.stop_code import StopCode, StopCodeValidator, make_stop_code, parse_stop_code
from wakeorpay.verification.timer import VerificationTimer

__all__ = ["StopCode", "StopCodeValidator", "VerificationTimer", "make_stop_code", "parse_stop_code"]
