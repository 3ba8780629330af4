"""
WhatsApp CRM Database Models

Tables owned by the webhook/message pipeline. Every row is scoped by workspace_id.

Tables:
- whatsapp_numbers: Connected business phone lines (one per provider phone_number_id)
- contacts: Counterparts that wrote to, or were written by, a number
- conversations: One thread per (workspace, number, contact phone)
- messages: Append-only record of every wire message
- webhook_logs: Raw webhook bodies for replay/debugging
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

WhatsAppBase = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NumberStatus(str, Enum):
    """Connection status of a WhatsApp number."""

    ACTIVE = "active"
    PENDING = "pending"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class ConversationStatus(str, Enum):
    """Status of a conversation thread."""

    OPEN = "open"
    CLOSED = "closed"
    PENDING = "pending"


class MessageDirection(str, Enum):
    """Direction of a WhatsApp message."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageStatus(str, Enum):
    """Delivery status of a WhatsApp message."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class WorkspaceModelMixin:
    """Common fields for all pipeline models."""

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    workspace_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class WhatsAppNumber(WhatsAppBase, WorkspaceModelMixin):
    """
    A connected business phone line.

    The provider phone_number_id routes incoming webhooks to the owning workspace.
    """

    __tablename__ = "whatsapp_numbers"

    phone_number_id = Column(String(100), nullable=False)
    waba_id = Column(String(100), nullable=False)
    display_number = Column(String(32), nullable=False)
    access_token_encrypted = Column(Text, nullable=False)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=NumberStatus.ACTIVE.value)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("phone_number_id", name="uq_whatsapp_numbers_phone_number_id"),
        Index("idx_whatsapp_numbers_workspace_status", "workspace_id", "status"),
    )


class Contact(WhatsAppBase, WorkspaceModelMixin):
    """
    A counterpart identified by (workspace, number, phone).

    No unique constraint: concurrent first messages may create duplicates.
    """

    __tablename__ = "contacts"

    whatsapp_number_id = Column(Uuid(as_uuid=True), nullable=False)
    phone = Column(String(32), nullable=False)
    name = Column(String(255), nullable=True)  # From WhatsApp profile
    tags = Column(JSONType, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_contacts_workspace_number_phone", "workspace_id", "whatsapp_number_id", "phone"),
    )


class Conversation(WhatsAppBase, WorkspaceModelMixin):
    """
    The thread for (workspace, number, contact phone).
    """

    __tablename__ = "conversations"

    whatsapp_number_id = Column(Uuid(as_uuid=True), nullable=False)
    contact_phone = Column(String(32), nullable=False)
    contact_name = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=ConversationStatus.OPEN.value)
    unread_count = Column(Integer, nullable=False, default=0)
    last_message_text = Column(Text, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index(
            "idx_conversations_workspace_number_phone",
            "workspace_id",
            "whatsapp_number_id",
            "contact_phone",
        ),
        Index("idx_conversations_workspace_last_message", "workspace_id", "last_message_at"),
    )


class Message(WhatsAppBase, WorkspaceModelMixin):
    """
    Append-only record of one wire message.

    wa_message_id is the join key for delivery status callbacks.
    """

    __tablename__ = "messages"

    conversation_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    whatsapp_number_id = Column(Uuid(as_uuid=True), nullable=False)
    wa_message_id = Column(String(128), nullable=True, index=True)
    direction = Column(String(10), nullable=False)
    message_type = Column(String(20), nullable=False, default="text")
    content = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    media_id = Column(String(128), nullable=True)
    media_mime_type = Column(String(100), nullable=True)
    template_name = Column(String(255), nullable=True)
    template_params = Column(JSONType, nullable=True)
    status = Column(String(20), nullable=False, default=MessageStatus.PENDING.value)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    error_code = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_messages_workspace_conversation", "workspace_id", "conversation_id"),
        Index("idx_messages_workspace_created", "workspace_id", "created_at"),
    )

    def to_dict(self) -> dict:
        """Serialize for API responses and stream events."""
        return {
            "id": str(self.id),
            "workspace_id": str(self.workspace_id),
            "conversation_id": str(self.conversation_id),
            "whatsapp_number_id": str(self.whatsapp_number_id),
            "wa_message_id": self.wa_message_id,
            "direction": self.direction,
            "type": self.message_type,
            "content": self.content,
            "media_url": self.media_url,
            "media_mime_type": self.media_mime_type,
            "template_name": self.template_name,
            "template_params": self.template_params,
            "status": self.status,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class WebhookLog(WhatsAppBase):
    """
    Raw webhook body, written before any processing.

    Not workspace-scoped: the owning workspace is unknown until the body is parsed.
    """

    __tablename__ = "webhook_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    event_type = Column(String(50), nullable=False)
    payload = Column(JSONType, nullable=False)
    processed = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
