"""Single-shot countdown on the asyncio loop."""

import asyncio
from typing import Callable

from loguru import logger


class VerificationTimer:
    """
    One armed deadline at a time.

    Each arm/disarm bumps a generation counter; a callback that was already
    queued by the loop checks its generation before running, so delivery
    after `disarm()` is a no-op even if the handle could not be cancelled.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def generation(self) -> int:
        return self._generation

    def can_arm(self) -> bool:
        """Whether `arm()` has a live loop to schedule on."""
        if self._loop is not None:
            return not self._loop.is_closed()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def arm(self, duration: float, on_expire: Callable[[], None]) -> int:
        """Start the countdown, replacing any armed one. Returns its generation."""
        self.disarm()
        loop = self._loop or asyncio.get_running_loop()
        self._generation += 1
        self._handle = loop.call_later(max(0.0, duration), self._fire, self._generation, on_expire)
        logger.debug(f"Verification timer armed for {duration:.1f}s (gen {self._generation})")
        return self._generation

    def disarm(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, generation: int, on_expire: Callable[[], None]) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping stale timer callback (gen {generation})")
            return
        self._handle = None
        self._generation += 1  # deliver once
        try:
            on_expire()
        except Exception:
            logger.exception("Verification timer callback failed")
