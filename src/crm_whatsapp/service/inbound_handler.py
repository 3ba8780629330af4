"""
Inbound Webhook Handler

Processes WhatsApp Cloud API webhook bodies:
1. Logs the raw body
2. Resolves the WhatsApp number of each change
3. For each message unit: classify, resolve contact and conversation, persist
4. Applies delivery status callbacks
5. Publishes events

A failing unit is rolled back and logged; its siblings are still processed.
"""

import json
import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from crm_whatsapp.contracts.payloads import (
    InboundMessagePayload,
    StatusUpdate,
    WebhookPayload,
    parse_inbound_message,
)
from crm_whatsapp.persistence.models import (
    MessageDirection,
    MessageStatus,
    WebhookLog,
    WhatsAppNumber,
)
from crm_whatsapp.persistence.repo import WhatsAppRepository
from crm_whatsapp.providers.meta_cloud.webhook import iter_message_changes
from crm_whatsapp.routing.contacts import ContactResolver
from crm_whatsapp.routing.conversation import ConversationResolver
from crm_whatsapp.routing.number_resolver import NumberResolver
from crm_whatsapp.routing.phone import normalize_phone
from crm_whatsapp.service.classifier import classify_message
from crm_whatsapp.service.status_reconciler import StatusReconciler
from crm_whatsapp.streams.producer import WhatsAppStreamProducer

logger = logging.getLogger(__name__)

WEBHOOK_EVENT_TYPE = "whatsapp_webhook"


class InboundIngestor:
    """
    Handles incoming WhatsApp webhook bodies.

    Responsibilities:
    - Audit every body in webhook_logs before processing
    - Persist inbound messages with their contact and conversation
    - Reconcile delivery statuses
    - Publish events for dashboard consumers
    """

    def __init__(
        self,
        db: Session,
        producer: WhatsAppStreamProducer | None = None,
    ):
        self.db = db
        self.producer = producer
        self.repo = WhatsAppRepository(db)
        self.number_resolver = NumberResolver(db)
        self.contacts = ContactResolver(db)
        self.conversations = ConversationResolver(db)
        self.status_reconciler = StatusReconciler(db, producer)

    def ingest(self, body: dict[str, Any]) -> dict[str, Any]:
        """
        Log and process one webhook body.

        Args:
            body: Parsed JSON webhook body

        Returns:
            Processing summary
        """
        log = self.repo.create_webhook_log(body, event_type=WEBHOOK_EVENT_TYPE)
        self.db.commit()

        return self.process(body, log)

    def log_rejected(self, body: bytes, reason: str) -> WebhookLog | None:
        """
        Record a body refused before processing, such as one with a bad signature.

        The row is written unprocessed with the reason as its error. Bodies that
        are not a JSON object are stored under a "raw" key.
        """
        try:
            payload: Any = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = body.decode("utf-8", errors="replace")
        if not isinstance(payload, dict):
            payload = {"raw": payload}

        try:
            log = self.repo.create_webhook_log(payload, event_type=WEBHOOK_EVENT_TYPE)
            self.repo.mark_webhook_log(log, processed=False, error_message=reason)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to log rejected webhook: {e}", exc_info=True)
            return None
        return log

    def process(self, body: dict[str, Any], log: WebhookLog | None = None) -> dict[str, Any]:
        """
        Process a webhook body (already logged, or replayed from a log row).

        Returns:
            Processing summary with per-unit results
        """
        summary: dict[str, Any] = {
            "messages": [],
            "statuses": [],
            "skipped_changes": 0,
        }

        try:
            payload = WebhookPayload.model_validate(body)
        except ValidationError as e:
            logger.warning(f"Unrecognized webhook body: {e.error_count()} validation errors")
            self._finish(log, processed=False, error="Unrecognized webhook body")
            summary["error"] = "invalid_body"
            return summary

        for change in iter_message_changes(payload):
            if change is None:
                summary["skipped_changes"] += 1
                continue

            value = change.value
            phone_number_id = value.metadata.phone_number_id
            if not phone_number_id:
                logger.warning("Webhook change without phone_number_id, skipping")
                summary["skipped_changes"] += 1
                continue

            try:
                number = self.number_resolver.resolve_from_phone_number_id(phone_number_id)
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"Failed to resolve WhatsApp number: {e}",
                    exc_info=True,
                    extra={"phone_number_id": phone_number_id},
                )
                summary["skipped_changes"] += 1
                continue

            if not number:
                summary["skipped_changes"] += 1
                continue

            for raw_message in value.messages:
                summary["messages"].append(
                    self.process_message(number, raw_message, value.profile_name)
                )

            for raw_status in value.statuses:
                summary["statuses"].append(self.process_status(number, raw_status))

        failed = [r for r in summary["messages"] + summary["statuses"] if r["status"] == "failed"]
        self._finish(log, processed=True, error=f"{len(failed)} unit(s) failed" if failed else None)

        return summary

    def process_message(
        self,
        number: WhatsAppNumber,
        raw: Any,
        profile_name: str | None = None,
    ) -> dict[str, Any]:
        """
        Process a single inbound message unit.

        Args:
            number: WhatsApp number that received the message
            raw: Raw message unit from the webhook
            profile_name: Sender's WhatsApp profile name

        Returns:
            Processing result dict
        """
        try:
            unit = parse_inbound_message(raw)
        except ValidationError as e:
            logger.warning(
                f"Skipping malformed message unit: {e.error_count()} validation errors",
                extra={"whatsapp_number_id": str(number.id)},
            )
            return {"status": "skipped", "reason": "invalid_unit"}

        result: dict[str, Any] = {
            "wa_message_id": unit.id,
            "status": "processed",
        }

        try:
            # Provider retries and replays deliver the same unit again
            if self.repo.get_message_by_wa_id(unit.id):
                logger.debug(f"Message {unit.id} already processed, skipping")
                return {"status": "skipped", "reason": "already_processed", "wa_message_id": unit.id}

            classified = classify_message(unit)

            contact, contact_created = self.contacts.resolve(
                workspace_id=number.workspace_id,
                number_id=number.id,
                phone=unit.from_,
                name=profile_name,
            )

            conversation, conversation_created = self.conversations.record_inbound(
                workspace_id=number.workspace_id,
                number_id=number.id,
                phone=unit.from_,
                preview=classified.summary,
                name=profile_name,
                timestamp=unit.sent_at,
            )

            message = self.repo.create_message(
                workspace_id=number.workspace_id,
                conversation_id=conversation.id,
                number_id=number.id,
                direction=MessageDirection.INBOUND,
                message_type=classified.message_type.value,
                content=classified.summary,
                wa_message_id=unit.id,
                # Inbound messages are delivered by definition
                status=MessageStatus.DELIVERED,
                media_id=classified.media_id,
                media_mime_type=classified.media_mime_type,
                sent_at=unit.sent_at,
            )

            self.db.commit()

            result.update({
                "message_id": str(message.id),
                "conversation_id": str(conversation.id),
                "contact_id": str(contact.id),
                "is_new_contact": contact_created,
                "is_new_conversation": conversation_created,
            })

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to process inbound message: {e}", exc_info=True)
            result["status"] = "failed"
            result["error"] = str(e)
            return result

        self._publish_inbound_event(
            workspace_id=number.workspace_id,
            payload=InboundMessagePayload(
                message_id=message.id,
                wa_message_id=unit.id,
                conversation_id=conversation.id,
                contact_id=contact.id,
                from_phone=normalize_phone(unit.from_),
                message_type=classified.message_type,
                content=classified.summary,
            ),
        )

        return result

    def process_status(self, number: WhatsAppNumber, raw: Any) -> dict[str, Any]:
        """Validate and apply one status callback."""
        try:
            status = StatusUpdate.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                f"Skipping malformed status update: {e.error_count()} validation errors",
                extra={"whatsapp_number_id": str(number.id)},
            )
            return {"status": "skipped", "reason": "invalid_status"}

        try:
            return self.status_reconciler.apply(status, workspace_id=number.workspace_id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to apply status update: {e}", exc_info=True)
            return {"status": "failed", "wa_message_id": status.id, "error": str(e)}

    def _publish_inbound_event(
        self,
        workspace_id: UUID,
        payload: InboundMessagePayload,
    ) -> None:
        if not self.producer:
            return
        self.producer.publish_inbound(
            workspace_id=workspace_id,
            payload=payload.model_dump(mode="json"),
            correlation_id=payload.wa_message_id,
        )

    def _finish(
        self,
        log: WebhookLog | None,
        processed: bool,
        error: str | None = None,
    ) -> None:
        """Record the outcome on the webhook log row."""
        if log is None:
            return
        try:
            self.repo.mark_webhook_log(log, processed=processed, error_message=error)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update webhook log: {e}", exc_info=True)
