"""
WhatsApp Payload Models

Pydantic models for webhook bodies, send requests and event payloads.
Webhook units are validated here before entering the pipeline.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
    model_validator,
)


class MessageType(str, Enum):
    """Types of WhatsApp messages."""

    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    STICKER = "sticker"
    LOCATION = "location"
    CONTACTS = "contacts"
    INTERACTIVE = "interactive"
    BUTTON = "button"
    TEMPLATE = "template"
    REACTION = "reaction"
    UNKNOWN = "unknown"


class DeliveryStatus(str, Enum):
    """WhatsApp message delivery status reported by status callbacks."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


# =============================================================================
# Inbound message units
# =============================================================================


class _Unit(BaseModel):
    """Fields shared by every inbound message unit."""

    model_config = ConfigDict(extra="allow")

    id: str
    from_: str = Field(..., alias="from")
    timestamp: str | None = None

    @property
    def sent_at(self) -> datetime | None:
        if not self.timestamp:
            return None
        try:
            return datetime.fromtimestamp(int(self.timestamp), tz=timezone.utc)
        except (TypeError, ValueError):
            return None


class TextBody(BaseModel):
    body: str = ""


class MediaBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    mime_type: str | None = None
    caption: str | None = None
    filename: str | None = None


class LocationBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    latitude: float | None = None
    longitude: float | None = None
    name: str | None = None
    address: str | None = None


class ReplyBody(BaseModel):
    id: str | None = None
    title: str | None = None


class InteractiveBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str | None = None
    button_reply: ReplyBody | None = None
    list_reply: ReplyBody | None = None


class TextMessage(_Unit):
    type: Literal["text"]
    text: TextBody = Field(default_factory=TextBody)


class ImageMessage(_Unit):
    type: Literal["image"]
    image: MediaBody = Field(default_factory=MediaBody)


class VideoMessage(_Unit):
    type: Literal["video"]
    video: MediaBody = Field(default_factory=MediaBody)


class AudioMessage(_Unit):
    type: Literal["audio"]
    audio: MediaBody = Field(default_factory=MediaBody)


class DocumentMessage(_Unit):
    type: Literal["document"]
    document: MediaBody = Field(default_factory=MediaBody)


class StickerMessage(_Unit):
    type: Literal["sticker"]
    sticker: MediaBody = Field(default_factory=MediaBody)


class LocationMessage(_Unit):
    type: Literal["location"]
    location: LocationBody = Field(default_factory=LocationBody)


class InteractiveMessage(_Unit):
    type: Literal["interactive"]
    interactive: InteractiveBody = Field(default_factory=InteractiveBody)


class UnknownMessage(_Unit):
    """Any unit whose type the pipeline does not model (button, reaction, ...)."""

    type: str = "unknown"


_KNOWN_UNIT_TYPES = {
    "text",
    "image",
    "video",
    "audio",
    "document",
    "sticker",
    "location",
    "interactive",
}


def _unit_tag(value: Any) -> str:
    unit_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return unit_type if unit_type in _KNOWN_UNIT_TYPES else "unknown"


InboundMessage = Annotated[
    Union[
        Annotated[TextMessage, Tag("text")],
        Annotated[ImageMessage, Tag("image")],
        Annotated[VideoMessage, Tag("video")],
        Annotated[AudioMessage, Tag("audio")],
        Annotated[DocumentMessage, Tag("document")],
        Annotated[StickerMessage, Tag("sticker")],
        Annotated[LocationMessage, Tag("location")],
        Annotated[InteractiveMessage, Tag("interactive")],
        Annotated[UnknownMessage, Tag("unknown")],
    ],
    Discriminator(_unit_tag),
]

inbound_message_adapter = TypeAdapter(InboundMessage)


def parse_inbound_message(raw: dict[str, Any]) -> InboundMessage:
    """
    Validate one raw message unit into its tagged variant.

    Raises:
        pydantic.ValidationError: If the unit is malformed
    """
    return inbound_message_adapter.validate_python(raw)


# =============================================================================
# Status callbacks
# =============================================================================


class StatusError(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int | None = None
    title: str | None = None
    message: str | None = None


class StatusUpdate(BaseModel):
    """One entry of the `statuses` array of a webhook change."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Provider message ID")
    status: DeliveryStatus = Field(..., description="New delivery status")
    timestamp: str | None = Field(None, description="Unix seconds, as sent by the provider")
    recipient_id: str | None = Field(None, description="Recipient phone")
    errors: list[StatusError] = Field(default_factory=list, description="Provider errors on failure")

    @property
    def occurred_at(self) -> datetime:
        if self.timestamp:
            try:
                return datetime.fromtimestamp(int(self.timestamp), tz=timezone.utc)
            except (TypeError, ValueError):
                pass
        return datetime.now(timezone.utc)


# =============================================================================
# Webhook envelope
# =============================================================================


class ProfileInfo(BaseModel):
    name: str | None = None


class WebhookContact(BaseModel):
    model_config = ConfigDict(extra="allow")

    wa_id: str | None = None
    profile: ProfileInfo | None = None


class WebhookMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    phone_number_id: str | None = None
    display_phone_number: str | None = None


class ChangeValue(BaseModel):
    """
    The `value` object of a webhook change.

    messages and statuses are kept raw so each unit can be validated on its own.
    """

    model_config = ConfigDict(extra="allow")

    metadata: WebhookMetadata = Field(default_factory=WebhookMetadata)
    contacts: list[WebhookContact] = Field(default_factory=list)
    messages: list[Any] = Field(default_factory=list)
    statuses: list[Any] = Field(default_factory=list)

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("contacts", "messages", "statuses", mode="before")
    @classmethod
    def _null_lists(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def profile_name(self) -> str | None:
        if self.contacts and self.contacts[0].profile:
            return self.contacts[0].profile.name
        return None


class WebhookChange(BaseModel):
    model_config = ConfigDict(extra="allow")

    field: str | None = None
    value: ChangeValue = Field(default_factory=ChangeValue)

    @field_validator("value", mode="before")
    @classmethod
    def _null_value(cls, value: Any) -> Any:
        return {} if value is None else value


class WebhookEntry(BaseModel):
    """One entry of a webhook body; changes are validated one at a time."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    changes: list[Any] = Field(default_factory=list)

    @field_validator("changes", mode="before")
    @classmethod
    def _null_changes(cls, value: Any) -> Any:
        return [] if value is None else value


class WebhookPayload(BaseModel):
    """
    Top-level webhook body posted by the provider.

    Entries stay raw so one malformed entry cannot reject the whole body.
    """

    model_config = ConfigDict(extra="allow")

    object: str | None = None
    entry: list[Any] = Field(default_factory=list)

    @field_validator("entry", mode="before")
    @classmethod
    def _null_entry(cls, value: Any) -> Any:
        return [] if value is None else value


# =============================================================================
# Outbound send request
# =============================================================================


class OutboundKind(str, Enum):
    """Message kinds accepted by the send path."""

    TEXT = "text"
    TEMPLATE = "template"
    IMAGE = "image"
    DOCUMENT = "document"
    VIDEO = "video"
    AUDIO = "audio"
    INTERACTIVE = "interactive"


MEDIA_KINDS = {OutboundKind.IMAGE, OutboundKind.DOCUMENT, OutboundKind.VIDEO, OutboundKind.AUDIO}


class TemplateParams(BaseModel):
    """Caller-supplied template parameter groups; omitted groups produce no component."""

    header: list[str] | None = None
    body: list[str] | None = None
    buttons: list[str] | None = None


class SendMessageRequest(BaseModel):
    """
    Normalized outbound send request.

    Kind-specific required fields are checked by OutboundDispatcher.validate
    so a missing field surfaces as a pipeline ValidationError, not a 422.
    """

    whatsapp_number_id: UUID = Field(..., description="Internal WhatsApp number ID")
    to: str = Field(..., description="Recipient phone, any format")
    message_type: OutboundKind = Field(..., description="Message kind")
    content: str | None = Field(None, description="Text body (text kind)")
    template_name: str | None = Field(None, description="Approved template name")
    template_language: str | None = Field(None, description="Template language code")
    template_params: TemplateParams | None = Field(None, description="Template parameter groups")
    media_url: str | None = Field(None, description="Public media link (media kinds)")
    media_caption: str | None = Field(None, description="Caption (image/document/video)")
    interactive: dict[str, Any] | None = Field(None, description="Provider interactive object")

    @field_validator("to")
    @classmethod
    def _strip_to(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def _blank_to_none(self) -> "SendMessageRequest":
        for name in ("content", "template_name", "template_language", "media_url"):
            value = getattr(self, name)
            if isinstance(value, str) and not value.strip():
                setattr(self, name, None)
        return self


# =============================================================================
# Event payloads (Redis Streams)
# =============================================================================


class InboundMessagePayload(BaseModel):
    """Payload for whatsapp.inbound.received."""

    message_id: UUID = Field(..., description="Internal message ID")
    wa_message_id: str = Field(..., description="Provider message ID")
    conversation_id: UUID = Field(..., description="Conversation ID")
    contact_id: UUID = Field(..., description="Contact ID")
    from_phone: str = Field(..., description="Sender phone (digits)")
    message_type: MessageType = Field(..., description="Type of message")
    content: str = Field(..., description="Content summary")


class StatusUpdatedPayload(BaseModel):
    """Payload for whatsapp.message.status_updated."""

    wa_message_id: str = Field(..., description="Provider message ID")
    status: DeliveryStatus = Field(..., description="Delivery status")
    timestamp: datetime = Field(..., description="Status timestamp")
    error_code: str | None = Field(None, description="Error code (if failed)")
    error_message: str | None = Field(None, description="Error title (if failed)")


class OutboundSentPayload(BaseModel):
    """Payload for whatsapp.outbound.sent."""

    message_id: UUID = Field(..., description="Internal message ID")
    wa_message_id: str | None = Field(None, description="Provider message ID")
    conversation_id: UUID = Field(..., description="Conversation ID")
    to_phone: str = Field(..., description="Recipient phone (digits)")
    message_type: OutboundKind = Field(..., description="Message kind")
