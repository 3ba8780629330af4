"""
Number Resolver

Resolves the owning WhatsApp number (and workspace) from webhook data,
and decrypts the stored provider credential for outbound calls.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from crm_whatsapp.persistence.models import WhatsAppNumber
from crm_whatsapp.persistence.repo import WhatsAppRepository

logger = logging.getLogger(__name__)


class NumberResolver:
    """
    Resolves WhatsApp numbers by provider phone_number_id or internal ID.
    """

    def __init__(self, db: Session, encryption_key: str | None = None):
        self.db = db
        self.repo = WhatsAppRepository(db)
        self.encryption_key = encryption_key

    def resolve_from_phone_number_id(
        self,
        phone_number_id: str,
    ) -> WhatsAppNumber | None:
        """
        Resolve a number from the provider phone number ID of a webhook.

        Args:
            phone_number_id: WhatsApp Business phone number ID from webhook

        Returns:
            The number if registered, None otherwise
        """
        number = self.repo.get_number_by_phone_number_id(phone_number_id)

        if number:
            logger.debug(
                f"Resolved number from phone_number_id",
                extra={
                    "phone_number_id": phone_number_id,
                    "workspace_id": str(number.workspace_id),
                },
            )
        else:
            logger.warning(
                f"No WhatsApp number registered for phone_number_id: {phone_number_id}"
            )

        return number

    def resolve(
        self,
        number_id: UUID,
        workspace_id: UUID | None = None,
    ) -> WhatsAppNumber | None:
        """
        Resolve a number by internal ID for the send path.

        Args:
            number_id: Internal WhatsApp number ID
            workspace_id: Restrict the lookup to this workspace (optional)

        Returns:
            The number if found, None otherwise
        """
        return self.repo.get_number(number_id, workspace_id=workspace_id)

    def get_access_token(self, number: WhatsAppNumber) -> str | None:
        """
        Get decrypted access token for a number.

        Returns:
            Decrypted access token, None if not available
        """
        if not number.access_token_encrypted:
            return None

        # Not encrypted (no key configured), stored as-is
        if not self.encryption_key:
            return number.access_token_encrypted

        from cryptography.fernet import Fernet, InvalidToken

        try:
            f = Fernet(self.encryption_key.encode())
            return f.decrypt(number.access_token_encrypted.encode()).decode()
        except (InvalidToken, ValueError) as e:
            logger.error(
                f"Failed to decrypt access token: {e!r}",
                extra={"whatsapp_number_id": str(number.id)},
            )
            return None


def encrypt_access_token(token: str, encryption_key: str | None) -> str:
    """Encrypt a token for storage; returned unchanged when no key is configured."""
    if not encryption_key:
        return token

    from cryptography.fernet import Fernet

    return Fernet(encryption_key.encode()).encrypt(token.encode()).decode()
