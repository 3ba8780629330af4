"""
Conversation Resolver

Finds or creates the thread for (workspace, number, contact phone) and keeps
its preview, timestamp and unread counter current.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from crm_whatsapp.persistence.models import Conversation, utcnow
from crm_whatsapp.persistence.repo import WhatsAppRepository
from crm_whatsapp.routing.phone import is_same_phone, national_key, normalize_phone, phone_variants

logger = logging.getLogger(__name__)


class ConversationResolver:
    """
    Conversation bookkeeping shared by the inbound and outbound paths.

    - Inbound messages create with unread 1 or increment the counter in SQL
    - Outbound messages create with unread 0 or leave the counter alone
    - Both overwrite the last-message preview and timestamp
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = WhatsAppRepository(db)

    def find(self, workspace_id: UUID, number_id: UUID, phone: str) -> Conversation | None:
        """
        Find a conversation by exact, `+`-stripped or `+`-added phone, then
        by trailing digits so "919999999999" and "9999999999" share a thread.

        Returns:
            The oldest matching conversation, None if there is none
        """
        conversation = self.repo.find_conversation(workspace_id, number_id, phone_variants(phone))
        if conversation is not None:
            return conversation

        key = national_key(phone)
        if key is None:
            return None
        for candidate in self.repo.find_conversations_by_phone_suffix(workspace_id, number_id, key):
            if is_same_phone(candidate.contact_phone, phone):
                return candidate
        return None

    def record_inbound(
        self,
        workspace_id: UUID,
        number_id: UUID,
        phone: str,
        preview: str | None,
        name: str | None = None,
        timestamp: datetime | None = None,
    ) -> tuple[Conversation, bool]:
        """
        Record an inbound message on the conversation.

        Returns:
            Tuple of (conversation, created)
        """
        return self._record(
            workspace_id,
            number_id,
            phone,
            preview,
            name=name,
            timestamp=timestamp,
            inbound=True,
        )

    def record_outbound(
        self,
        workspace_id: UUID,
        number_id: UUID,
        phone: str,
        preview: str | None,
        timestamp: datetime | None = None,
    ) -> tuple[Conversation, bool]:
        """
        Record an outbound message on the conversation.

        Returns:
            Tuple of (conversation, created)
        """
        return self._record(
            workspace_id,
            number_id,
            phone,
            preview,
            timestamp=timestamp,
            inbound=False,
        )

    def _record(
        self,
        workspace_id: UUID,
        number_id: UUID,
        phone: str,
        preview: str | None,
        name: str | None = None,
        timestamp: datetime | None = None,
        inbound: bool = True,
    ) -> tuple[Conversation, bool]:
        now = timestamp or utcnow()
        conversation = self.find(workspace_id, number_id, phone)

        if conversation is None:
            conversation = self.repo.create_conversation(
                workspace_id=workspace_id,
                number_id=number_id,
                contact_phone=normalize_phone(phone),
                contact_name=name,
                last_message_text=preview,
                unread_count=1 if inbound else 0,
                timestamp=now,
            )
            self.db.flush()

            logger.info(
                f"Created conversation",
                extra={
                    "workspace_id": str(workspace_id),
                    "conversation_id": str(conversation.id),
                    "direction": "inbound" if inbound else "outbound",
                },
            )
            return conversation, True

        self.repo.touch_conversation(
            conversation,
            last_message_text=preview,
            timestamp=now,
            increment_unread=inbound,
        )
        return conversation, False
