"""Outbound chat channel clients."""

from .messenger_client import MessengerClient
from .twilio_client import TwilioWhatsAppClient, whatsapp_address

__all__ = [
    "MessengerClient",
    "TwilioWhatsAppClient",
    "whatsapp_address",
]
