"""
WhatsApp Pipeline Contracts

Webhook models, send request, event types and envelope definitions.
"""

from crm_whatsapp.contracts.envelope import WhatsAppEnvelope
from crm_whatsapp.contracts.event_types import WhatsAppEventType
from crm_whatsapp.contracts.payloads import (
    DeliveryStatus,
    InboundMessage,
    InboundMessagePayload,
    MessageType,
    OutboundKind,
    OutboundSentPayload,
    SendMessageRequest,
    StatusUpdate,
    StatusUpdatedPayload,
    TemplateParams,
    WebhookPayload,
    parse_inbound_message,
)

__all__ = [
    "WhatsAppEventType",
    "WhatsAppEnvelope",
    "InboundMessage",
    "InboundMessagePayload",
    "StatusUpdate",
    "StatusUpdatedPayload",
    "SendMessageRequest",
    "OutboundSentPayload",
    "TemplateParams",
    "WebhookPayload",
    "MessageType",
    "OutboundKind",
    "DeliveryStatus",
    "parse_inbound_message",
]
