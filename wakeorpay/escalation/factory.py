"""Gateway factory for creating the relay client based on configuration."""

from loguru import logger

from wakeorpay.config.schema import Config
from wakeorpay.escalation.base import EscalationGateway, NullEscalationGateway
from wakeorpay.escalation.webhook import WebhookEscalationGateway


def create_gateway(config: Config) -> EscalationGateway:
    """
    Create the escalation gateway.

    Args:
        config: The wakeorpay configuration.

    Returns:
        A webhook client, or a logging no-op when escalation is switched off
        or there is no emergency contact.
    """
    if not config.escalation_active():
        logger.warning("Escalation inactive: no emergency SMS will be sent")
        return NullEscalationGateway()

    return WebhookEscalationGateway(
        base_url=config.escalation.base_url,
        device_id=config.escalation.device_id,
        sms_window_seconds=config.escalation.sms_window_seconds,
        timeout=config.escalation.timeout_seconds,
    )
