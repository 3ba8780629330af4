"""
WhatsApp Redis Streams

Event publishing for dashboard consumers.
"""

from crm_whatsapp.streams.producer import (
    WHATSAPP_EVENTS_STREAM,
    WhatsAppStreamProducer,
    get_event_producer,
)

__all__ = [
    "WhatsAppStreamProducer",
    "WHATSAPP_EVENTS_STREAM",
    "get_event_producer",
]
