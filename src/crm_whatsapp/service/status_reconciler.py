"""
Status Reconciler

Applies delivery status callbacks (sent/delivered/read/failed) to stored
messages, matched by provider message ID.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from crm_whatsapp.contracts.payloads import DeliveryStatus, StatusUpdate, StatusUpdatedPayload
from crm_whatsapp.persistence.models import MessageStatus
from crm_whatsapp.persistence.repo import WhatsAppRepository
from crm_whatsapp.streams.producer import WhatsAppStreamProducer

logger = logging.getLogger(__name__)

STATUS_MAP = {
    DeliveryStatus.SENT: MessageStatus.SENT,
    DeliveryStatus.DELIVERED: MessageStatus.DELIVERED,
    DeliveryStatus.READ: MessageStatus.READ,
    DeliveryStatus.FAILED: MessageStatus.FAILED,
}

TIMESTAMP_FIELDS = {
    DeliveryStatus.SENT: "sent_at",
    DeliveryStatus.DELIVERED: "delivered_at",
    DeliveryStatus.READ: "read_at",
}

DEFAULT_FAILURE_TEXT = "Failed"


class StatusReconciler:
    """
    Applies status callbacks to Message rows.

    Unknown provider IDs are a no-op: callbacks may arrive before the send
    path commits, or reference messages never stored here. Applying the same
    callback twice leaves the row unchanged.
    """

    def __init__(
        self,
        db: Session,
        producer: WhatsAppStreamProducer | None = None,
    ):
        self.db = db
        self.repo = WhatsAppRepository(db)
        self.producer = producer

    def build_update(self, status: StatusUpdate) -> dict[str, Any]:
        """Column values to write for a status callback."""
        values: dict[str, Any] = {"status": STATUS_MAP[status.status].value}

        timestamp_field = TIMESTAMP_FIELDS.get(status.status)
        if timestamp_field:
            values[timestamp_field] = status.occurred_at

        if status.status == DeliveryStatus.FAILED:
            first_error = status.errors[0] if status.errors else None
            values["error_message"] = (first_error.title if first_error else None) or DEFAULT_FAILURE_TEXT
            values["error_code"] = (
                str(first_error.code) if first_error and first_error.code is not None else None
            )

        return values

    def apply(
        self,
        status: StatusUpdate,
        workspace_id: UUID | None = None,
    ) -> dict[str, Any]:
        """
        Apply one status callback and commit.

        Args:
            status: Validated status callback
            workspace_id: Owning workspace of the number that received it

        Returns:
            Processing result dict
        """
        values = self.build_update(status)

        updated = self.repo.update_message_status_by_wa_id(
            status.id,
            values,
            workspace_id=workspace_id,
        )

        if not updated:
            self.db.rollback()
            logger.debug(f"No message found for provider ID: {status.id}")
            return {"status": "skipped", "reason": "message_not_found", "wa_message_id": status.id}

        self.db.commit()

        logger.info(
            f"Message status updated to {status.status.value}",
            extra={"wa_message_id": status.id, "status": status.status.value},
        )

        if self.producer and workspace_id is not None:
            self.producer.publish_status(
                workspace_id=workspace_id,
                payload=StatusUpdatedPayload(
                    wa_message_id=status.id,
                    status=status.status,
                    timestamp=status.occurred_at,
                    error_code=values.get("error_code"),
                    error_message=values.get("error_message"),
                ).model_dump(mode="json"),
                correlation_id=status.id,
            )

        return {
            "status": "updated",
            "wa_message_id": status.id,
            "new_status": values["status"],
        }
