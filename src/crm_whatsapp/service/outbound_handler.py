"""
Outbound Message Dispatcher

Sends messages via the provider:
1. Validates kind-specific fields (no I/O on failure)
2. Resolves the WhatsApp number and its credential
3. Renders the provider wire body
4. Calls the provider, translating rejections
5. Records the conversation and persists the message
6. Publishes an event
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm_whatsapp.contracts.payloads import (
    MEDIA_KINDS,
    OutboundKind,
    OutboundSentPayload,
    SendMessageRequest,
)
from crm_whatsapp.persistence.models import (
    Message,
    MessageDirection,
    MessageStatus,
    utcnow,
)
from crm_whatsapp.persistence.repo import WhatsAppRepository
from crm_whatsapp.providers.base import ProviderError, WhatsAppProvider
from crm_whatsapp.providers.meta_cloud.errors import translate_exception
from crm_whatsapp.providers.meta_cloud.templates import build_template_components
from crm_whatsapp.routing.conversation import ConversationResolver
from crm_whatsapp.routing.number_resolver import NumberResolver
from crm_whatsapp.routing.phone import normalize_phone
from crm_whatsapp.service.exceptions import (
    NumberNotFoundError,
    SendFailedError,
    ValidationError,
)
from crm_whatsapp.streams.producer import WhatsAppStreamProducer

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    """Successful send: provider message ID and the stored row."""

    message_id: str | None
    message: Message


def validate_request(request: SendMessageRequest) -> None:
    """
    Check the fields required by the message kind.

    Raises:
        ValidationError: If a required field is missing
    """
    kind = request.message_type

    if not normalize_phone(request.to):
        raise ValidationError("Recipient phone number is required")

    if kind == OutboundKind.TEXT and not request.content:
        raise ValidationError("Content is required for text messages")

    if kind == OutboundKind.TEMPLATE and not (request.template_name and request.template_language):
        raise ValidationError(
            "template_name and template_language are required for template messages"
        )

    if kind in MEDIA_KINDS and not request.media_url:
        raise ValidationError(f"media_url is required for {kind.value} messages")

    if kind == OutboundKind.INTERACTIVE and not request.interactive:
        raise ValidationError("interactive object is required for interactive messages")


def render_wire_payload(request: SendMessageRequest) -> dict[str, Any]:
    """
    Render a validated request into the provider wire body.

    Args:
        request: Request that passed validate_request

    Returns:
        JSON body for the messages endpoint
    """
    kind = request.message_type

    payload: dict[str, Any] = {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": normalize_phone(request.to),
        "type": kind.value,
    }

    if kind == OutboundKind.TEXT:
        payload["text"] = {"preview_url": True, "body": request.content}

    elif kind == OutboundKind.TEMPLATE:
        template: dict[str, Any] = {
            "name": request.template_name,
            "language": {"code": request.template_language},
        }
        components = build_template_components(request.template_params)
        if components:
            template["components"] = components
        payload["template"] = template

    elif kind == OutboundKind.AUDIO:
        payload["audio"] = {"link": request.media_url}

    elif kind in MEDIA_KINDS:
        media: dict[str, Any] = {"link": request.media_url}
        if request.media_caption:
            media["caption"] = request.media_caption
        payload[kind.value] = media

    elif kind == OutboundKind.INTERACTIVE:
        payload["interactive"] = request.interactive

    return payload


def stored_content(request: SendMessageRequest) -> str:
    """Content stored on the message row."""
    if request.content:
        return request.content
    if request.template_name:
        return f"Template: {request.template_name}"
    return f"[{request.message_type.value}]"


def conversation_preview(request: SendMessageRequest) -> str:
    """Last-message preview written to the conversation."""
    return request.content or f"[{request.message_type.value}]"


class OutboundDispatcher:
    """
    Handles outbound message sends.

    The provider and the encryption key are explicit dependencies; the
    number's credential is looked up per send.
    """

    def __init__(
        self,
        db: Session,
        provider: WhatsAppProvider,
        encryption_key: str | None = None,
        producer: WhatsAppStreamProducer | None = None,
    ):
        self.db = db
        self.provider = provider
        self.producer = producer
        self.repo = WhatsAppRepository(db)
        self.number_resolver = NumberResolver(db, encryption_key=encryption_key)
        self.conversations = ConversationResolver(db)

    async def send(
        self,
        request: SendMessageRequest,
        workspace_id: UUID | None = None,
    ) -> SendResult:
        """
        Send a message via the provider and persist it.

        Args:
            request: Normalized send request
            workspace_id: Restrict the number lookup to this workspace (optional)

        Returns:
            SendResult with the provider message ID and stored message

        Raises:
            ValidationError: Missing kind-specific field
            NumberNotFoundError: Unknown number (or other workspace)
            SendFailedError: Provider rejection or storage failure
        """
        validate_request(request)

        try:
            number = self.number_resolver.resolve(request.whatsapp_number_id, workspace_id=workspace_id)
            access_token = self.number_resolver.get_access_token(number) if number else None
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to load WhatsApp number: {e}",
                exc_info=True,
                extra={"whatsapp_number_id": str(request.whatsapp_number_id)},
            )
            raise SendFailedError("Failed to send the WhatsApp message", status_code=500) from e

        if not number:
            raise NumberNotFoundError("WhatsApp number not found or access denied")

        if not access_token:
            raise SendFailedError(
                "No access token configured for this WhatsApp number",
                status_code=500,
            )

        wire_payload = render_wire_payload(request)
        to_phone = wire_payload["to"]

        try:
            response = await self.provider.send_message(
                phone_number_id=number.phone_number_id,
                access_token=access_token,
                payload=wire_payload,
            )
        except ProviderError as e:
            translated = translate_exception(e)
            logger.warning(
                f"Message send failed",
                extra={
                    "to": to_phone,
                    "error_code": e.code,
                    "error_subcode": e.subcode,
                    "error_message": e.message,
                },
            )
            raise SendFailedError(
                translated,
                error_code=str(e.code) if e.code is not None else None,
            ) from e

        wa_message_id = response.message_id

        try:
            now = utcnow()
            conversation, _ = self.conversations.record_outbound(
                workspace_id=number.workspace_id,
                number_id=number.id,
                phone=to_phone,
                preview=conversation_preview(request),
                timestamp=now,
            )

            message = self.repo.create_message(
                workspace_id=number.workspace_id,
                conversation_id=conversation.id,
                number_id=number.id,
                direction=MessageDirection.OUTBOUND,
                message_type=request.message_type.value,
                content=stored_content(request),
                wa_message_id=wa_message_id,
                status=MessageStatus.SENT,
                media_url=request.media_url,
                template_name=request.template_name,
                template_params=(
                    request.template_params.model_dump(exclude_none=True)
                    if request.template_params
                    else None
                ),
                sent_at=now,
            )

            self.db.commit()
            self.db.refresh(message)

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Message sent but could not be stored: {e}",
                exc_info=True,
                extra={"wa_message_id": wa_message_id},
            )
            raise SendFailedError(
                "Message was sent but could not be saved",
                status_code=500,
            ) from e

        logger.info(
            f"Message sent successfully",
            extra={
                "to": to_phone,
                "wa_message_id": wa_message_id,
                "type": request.message_type.value,
            },
        )

        if self.producer:
            self.producer.publish_outbound(
                workspace_id=number.workspace_id,
                payload=OutboundSentPayload(
                    message_id=message.id,
                    wa_message_id=wa_message_id,
                    conversation_id=message.conversation_id,
                    to_phone=to_phone,
                    message_type=request.message_type,
                ).model_dump(mode="json"),
                correlation_id=wa_message_id,
            )

        return SendResult(message_id=wa_message_id, message=message)
