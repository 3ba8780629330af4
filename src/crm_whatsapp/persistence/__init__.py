"""
Pipeline Persistence

SQLAlchemy models and repository for the pipeline tables.
"""

from crm_whatsapp.persistence.models import (
    Contact,
    Conversation,
    ConversationStatus,
    Message,
    MessageDirection,
    MessageStatus,
    NumberStatus,
    WebhookLog,
    WhatsAppBase,
    WhatsAppNumber,
)
from crm_whatsapp.persistence.repo import WhatsAppRepository

__all__ = [
    "WhatsAppBase",
    "WhatsAppNumber",
    "Contact",
    "Conversation",
    "Message",
    "WebhookLog",
    "WhatsAppRepository",
    "NumberStatus",
    "ConversationStatus",
    "MessageDirection",
    "MessageStatus",
]
