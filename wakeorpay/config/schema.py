"""Configuration schema using Pydantic."""

import uuid
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class VerificationConfig(BaseModel):
    """Local wake-up verification settings."""
    grace_window_seconds: float = Field(default=60, gt=0, description="Time allowed to present a stop code")
    stop_code_scheme: str = Field(default="WakeOrPay", min_length=1)
    universal_token: str = "Universal"  # Sentinel: any well-formed token stops the alarm


class EscalationConfig(BaseModel):
    """Remote SMS relay configuration."""
    enabled: bool = True
    base_url: str = "https://wakeorpay-server.vercel.app"
    timeout_seconds: float = Field(default=10.0, gt=0)
    sms_window_seconds: float = Field(default=60, gt=0, description="Server-side deadline after the alarm fires")
    emergency_contact: str = ""  # Phone number that receives the SMS
    device_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class StorageConfig(BaseModel):
    """Where alarms, history and the recovery record live."""
    data_dir: str = "~/.wakeorpay"


class SoundConfig(BaseModel):
    """Playback defaults for new alarms."""
    default_sound: str = "default"
    default_volume: float = Field(default=0.8, ge=0.0, le=1.0)
    haptic_feedback: bool = True


class Config(BaseSettings):
    """Root configuration for wakeorpay."""
    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    escalation: EscalationConfig = Field(default_factory=EscalationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sound: SoundConfig = Field(default_factory=SoundConfig)

    model_config = {"env_prefix": "WAKEORPAY_", "env_nested_delimiter": "__"}

    @property
    def data_path(self) -> Path:
        """Get expanded data directory."""
        return Path(self.storage.data_dir).expanduser()

    def escalation_active(self) -> bool:
        """Escalation needs both the switch and somebody to text."""
        return self.escalation.enabled and bool(self.escalation.emergency_contact.strip())
