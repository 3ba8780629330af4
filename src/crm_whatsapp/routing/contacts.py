"""
Contact Resolver

Finds or creates the contact for a sender phone within one WhatsApp number.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from crm_whatsapp.persistence.models import Contact, utcnow
from crm_whatsapp.persistence.repo import WhatsAppRepository
from crm_whatsapp.routing.phone import is_same_phone, national_key, normalize_phone, phone_variants

logger = logging.getLogger(__name__)


class ContactResolver:
    """
    Find-or-create for contacts keyed by (workspace, number, phone).

    There is no uniqueness constraint: two concurrent first messages from
    the same phone can both create a contact. Lookups return the oldest row.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = WhatsAppRepository(db)

    def find(self, workspace_id: UUID, number_id: UUID, phone: str) -> Contact | None:
        """Find a contact by any stored form of the phone."""
        contact = self.repo.find_contact(workspace_id, number_id, phone_variants(phone))
        if contact is not None:
            return contact

        key = national_key(phone)
        if key is None:
            return None
        for candidate in self.repo.find_contacts_by_phone_suffix(workspace_id, number_id, key):
            if is_same_phone(candidate.phone, phone):
                return candidate
        return None

    def resolve(
        self,
        workspace_id: UUID,
        number_id: UUID,
        phone: str,
        name: str | None = None,
    ) -> tuple[Contact, bool]:
        """
        Get or create a contact.

        An existing contact is returned untouched; its name is never overwritten.

        Args:
            workspace_id: Owning workspace
            number_id: Internal WhatsApp number ID
            phone: Sender phone, any format
            name: Profile name from the webhook (used only on create)

        Returns:
            Tuple of (contact, created)
        """
        contact = self.find(workspace_id, number_id, phone)
        if contact:
            return contact, False

        contact = self.repo.create_contact(
            workspace_id=workspace_id,
            number_id=number_id,
            phone=normalize_phone(phone),
            name=name,
            last_message_at=utcnow(),
        )
        self.db.flush()

        logger.info(
            f"Created contact",
            extra={
                "workspace_id": str(workspace_id),
                "contact_id": str(contact.id),
            },
        )
        return contact, True
