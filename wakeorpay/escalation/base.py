"""Escalation gateway interface."""

from abc import ABC, abstractmethod
from datetime import datetime

from loguru import logger


class EscalationGateway(ABC):
    """
    Remote relay that texts the emergency contact.

    The session machine fires these calls in the background and never waits
    on them. Implementations may raise EscalationError; the caller logs it.
    Delivery is best-effort: duplicates and misses are tolerated.
    """

    name: str = "base"

    @abstractmethod
    async def register(self, alarm_id: str, started_at: datetime, contact: str) -> None:
        """Arm the relay's own deadline for this ringing alarm."""
        pass

    @abstractmethod
    async def cancel(self, alarm_id: str, started_at: datetime) -> None:
        """Disarm the relay deadline. Safe to call when already fired or absent."""
        pass

    @abstractmethod
    async def notify_timeout(self, alarm_id: str, started_at: datetime, contact: str) -> None:
        """Ask the relay to send the emergency SMS now."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None


class NullEscalationGateway(EscalationGateway):
    """Used when escalation is disabled or nobody is configured to receive it."""

    name = "null"

    async def register(self, alarm_id: str, started_at: datetime, contact: str) -> None:
        logger.debug(f"Escalation disabled: not registering alarm {alarm_id}")

    async def cancel(self, alarm_id: str, started_at: datetime) -> None:
        logger.debug(f"Escalation disabled: nothing to cancel for alarm {alarm_id}")

    async def notify_timeout(self, alarm_id: str, started_at: datetime, contact: str) -> None:
        logger.warning(f"Alarm {alarm_id} timed out but escalation is disabled; no SMS sent")
