"""Alarm sound playback interface."""

from abc import ABC, abstractmethod

from loguru import logger


class SoundController(ABC):
    """Starts and stops the ringing sound."""

    @abstractmethod
    def start(self, sound_name: str, volume: float) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop playback. Stopping when silent is a no-op."""
        pass

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        pass


class LoggingSoundController(SoundController):
    """Tracks playback state and logs it; the audio device lives elsewhere."""

    def __init__(self, haptic_feedback: bool = False):
        self.haptic_feedback = haptic_feedback
        self.current_sound: str | None = None
        self.volume: float = 0.0
        self._playing = False

    def start(self, sound_name: str, volume: float) -> None:
        self.current_sound = sound_name
        self.volume = min(max(volume, 0.0), 1.0)
        self._playing = True
        logger.info(f"🔔 Playing {sound_name!r} at volume {self.volume:.2f}")
        if self.haptic_feedback:
            logger.debug("Haptic feedback on")

    def stop(self) -> None:
        if self._playing:
            logger.info("🔕 Alarm sound stopped")
        self._playing = False
        self.current_sound = None

    @property
    def is_playing(self) -> bool:
        return self._playing
