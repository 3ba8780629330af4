"""
WhatsApp Repository

Repository pattern for pipeline database operations.
Provides CRUD operations and common queries for the pipeline tables.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from crm_whatsapp.persistence.models import (
    Contact,
    Conversation,
    ConversationStatus,
    Message,
    MessageDirection,
    MessageStatus,
    NumberStatus,
    WebhookLog,
    WhatsAppNumber,
    utcnow,
)


class WhatsAppRepository:
    """Repository for pipeline database operations."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # WhatsApp Numbers
    # =========================================================================

    def get_number_by_phone_number_id(self, phone_number_id: str) -> WhatsAppNumber | None:
        """Get a number by the provider's phone_number_id."""
        return (
            self.db.query(WhatsAppNumber)
            .filter(WhatsAppNumber.phone_number_id == phone_number_id)
            .first()
        )

    def get_number(
        self,
        number_id: UUID,
        workspace_id: UUID | None = None,
    ) -> WhatsAppNumber | None:
        """Get a number by internal ID, optionally scoped to a workspace."""
        query = self.db.query(WhatsAppNumber).filter(WhatsAppNumber.id == number_id)
        if workspace_id is not None:
            query = query.filter(WhatsAppNumber.workspace_id == workspace_id)
        return query.first()

    def list_numbers(self, workspace_id: UUID | None = None) -> list[WhatsAppNumber]:
        """List numbers, optionally for one workspace."""
        query = self.db.query(WhatsAppNumber)
        if workspace_id is not None:
            query = query.filter(WhatsAppNumber.workspace_id == workspace_id)
        return query.order_by(WhatsAppNumber.created_at).all()

    def create_number(
        self,
        workspace_id: UUID,
        phone_number_id: str,
        waba_id: str,
        display_number: str,
        access_token_encrypted: str,
        status: NumberStatus = NumberStatus.ACTIVE,
        token_expires_at: datetime | None = None,
    ) -> WhatsAppNumber:
        """Create a new WhatsApp number."""
        number = WhatsAppNumber(
            workspace_id=workspace_id,
            phone_number_id=phone_number_id,
            waba_id=waba_id,
            display_number=display_number,
            access_token_encrypted=access_token_encrypted,
            status=status.value,
            token_expires_at=token_expires_at,
        )
        self.db.add(number)
        return number

    # =========================================================================
    # Contacts
    # =========================================================================

    def find_contact(
        self,
        workspace_id: UUID,
        number_id: UUID,
        phones: list[str],
    ) -> Contact | None:
        """Find the oldest contact whose phone matches any of the given forms."""
        return (
            self.db.query(Contact)
            .filter(
                Contact.workspace_id == workspace_id,
                Contact.whatsapp_number_id == number_id,
                Contact.phone.in_(phones),
            )
            .order_by(Contact.created_at)
            .first()
        )

    def find_contacts_by_phone_suffix(
        self,
        workspace_id: UUID,
        number_id: UUID,
        suffix: str,
    ) -> list[Contact]:
        """Contacts whose phone ends with the given digits, oldest first."""
        return (
            self.db.query(Contact)
            .filter(
                Contact.workspace_id == workspace_id,
                Contact.whatsapp_number_id == number_id,
                Contact.phone.like(f"%{suffix}"),
            )
            .order_by(Contact.created_at)
            .all()
        )

    def create_contact(
        self,
        workspace_id: UUID,
        number_id: UUID,
        phone: str,
        name: str | None = None,
        last_message_at: datetime | None = None,
    ) -> Contact:
        """Create a new contact."""
        contact = Contact(
            workspace_id=workspace_id,
            whatsapp_number_id=number_id,
            phone=phone,
            name=name,
            tags=[],
            last_message_at=last_message_at or utcnow(),
        )
        self.db.add(contact)
        return contact

    # =========================================================================
    # Conversations
    # =========================================================================

    def find_conversation(
        self,
        workspace_id: UUID,
        number_id: UUID,
        phones: list[str],
    ) -> Conversation | None:
        """Find the oldest conversation whose contact phone matches any of the given forms."""
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.workspace_id == workspace_id,
                Conversation.whatsapp_number_id == number_id,
                Conversation.contact_phone.in_(phones),
            )
            .order_by(Conversation.created_at)
            .first()
        )

    def find_conversations_by_phone_suffix(
        self,
        workspace_id: UUID,
        number_id: UUID,
        suffix: str,
    ) -> list[Conversation]:
        """Conversations whose contact phone ends with the given digits, oldest first."""
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.workspace_id == workspace_id,
                Conversation.whatsapp_number_id == number_id,
                Conversation.contact_phone.like(f"%{suffix}"),
            )
            .order_by(Conversation.created_at)
            .all()
        )

    def create_conversation(
        self,
        workspace_id: UUID,
        number_id: UUID,
        contact_phone: str,
        last_message_text: str | None,
        unread_count: int,
        contact_name: str | None = None,
        timestamp: datetime | None = None,
    ) -> Conversation:
        """Create a new open conversation."""
        conversation = Conversation(
            workspace_id=workspace_id,
            whatsapp_number_id=number_id,
            contact_phone=contact_phone,
            contact_name=contact_name,
            status=ConversationStatus.OPEN.value,
            unread_count=unread_count,
            last_message_text=last_message_text,
            last_message_at=timestamp or utcnow(),
        )
        self.db.add(conversation)
        return conversation

    def touch_conversation(
        self,
        conversation: Conversation,
        last_message_text: str | None,
        timestamp: datetime | None = None,
        increment_unread: bool = False,
    ) -> None:
        """
        Overwrite the preview and timestamp of a conversation.

        The unread counter is incremented in SQL so concurrent writers cannot lose updates.
        """
        now = timestamp or utcnow()
        values: dict[str, Any] = {
            "last_message_text": last_message_text,
            "last_message_at": now,
            "updated_at": now,
        }
        if increment_unread:
            values["unread_count"] = Conversation.unread_count + 1

        self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation.id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )

    def list_conversations(
        self,
        workspace_id: UUID,
        status: ConversationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Conversation]:
        """List conversations for a workspace, most recent first."""
        query = self.db.query(Conversation).filter(Conversation.workspace_id == workspace_id)

        if status:
            query = query.filter(Conversation.status == status.value)

        return (
            query.order_by(Conversation.last_message_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    # =========================================================================
    # Messages
    # =========================================================================

    def get_message_by_wa_id(self, wa_message_id: str) -> Message | None:
        """Get message by provider message ID."""
        return self.db.execute(
            select(Message).where(Message.wa_message_id == wa_message_id)
        ).scalars().first()

    def create_message(
        self,
        workspace_id: UUID,
        conversation_id: UUID,
        number_id: UUID,
        direction: MessageDirection,
        message_type: str,
        content: str | None = None,
        wa_message_id: str | None = None,
        status: MessageStatus = MessageStatus.PENDING,
        media_url: str | None = None,
        media_id: str | None = None,
        media_mime_type: str | None = None,
        template_name: str | None = None,
        template_params: dict[str, Any] | None = None,
        sent_at: datetime | None = None,
    ) -> Message:
        """Create a new message record."""
        message = Message(
            workspace_id=workspace_id,
            conversation_id=conversation_id,
            whatsapp_number_id=number_id,
            direction=direction.value,
            message_type=message_type,
            content=content,
            wa_message_id=wa_message_id,
            status=status.value,
            media_url=media_url,
            media_id=media_id,
            media_mime_type=media_mime_type,
            template_name=template_name,
            template_params=template_params,
            sent_at=sent_at,
        )
        self.db.add(message)
        return message

    def update_message_status_by_wa_id(
        self,
        wa_message_id: str,
        values: dict[str, Any],
        workspace_id: UUID | None = None,
    ) -> int:
        """
        Apply a status update to every message carrying this provider ID.

        Loaded Message objects are not synchronized; callers commit or roll
        back right after, which expires them.

        Returns:
            Number of rows updated (0 when the message is unknown)
        """
        stmt = update(Message).where(Message.wa_message_id == wa_message_id)
        if workspace_id is not None:
            stmt = stmt.where(Message.workspace_id == workspace_id)

        result = self.db.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    # =========================================================================
    # Webhook logs
    # =========================================================================

    def create_webhook_log(
        self,
        payload: dict[str, Any],
        event_type: str = "whatsapp_webhook",
    ) -> WebhookLog:
        """Record a raw webhook body."""
        log = WebhookLog(event_type=event_type, payload=payload, processed=False)
        self.db.add(log)
        return log

    def get_webhook_log(self, log_id: UUID) -> WebhookLog | None:
        """Get a webhook log by ID."""
        return self.db.get(WebhookLog, log_id)

    def mark_webhook_log(
        self,
        log: WebhookLog,
        processed: bool,
        error_message: str | None = None,
    ) -> None:
        """Record the processing outcome of a webhook body."""
        log.processed = processed
        log.error_message = error_message
