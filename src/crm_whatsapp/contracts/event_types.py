"""
WhatsApp Event Types

Events published by the pipeline for dashboard consumers.
"""

from enum import Enum


class WhatsAppEventType(str, Enum):
    """
    Event types published to the WhatsApp events stream.

    - INBOUND_RECEIVED: A contact sent a message and it was stored
    - STATUS_UPDATED: A delivery status callback matched a stored message
    - OUTBOUND_SENT: The provider accepted an outbound message
    """

    INBOUND_RECEIVED = "whatsapp.inbound.received"
    STATUS_UPDATED = "whatsapp.message.status_updated"
    OUTBOUND_SENT = "whatsapp.outbound.sent"

    def __str__(self) -> str:
        return self.value
