"""Outbound calls to the SMS escalation relay."""

from wakeorpay.escalation.base import EscalationGateway, NullEscalationGateway
from wakeorpay.escalation.webhook import WebhookEscalationGateway
from wakeorpay.escalation.factory import create_gateway

__all__ = ["EscalationGateway", "NullEscalationGateway", "WebhookEscalationGateway", "create_gateway"]
