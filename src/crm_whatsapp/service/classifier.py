"""
Message Classifier

Maps a validated inbound message unit to a display summary and type tag.
Pure and total: unknown unit types produce "[<type>]", never an error.
"""

from dataclasses import dataclass

from crm_whatsapp.contracts.payloads import (
    AudioMessage,
    DocumentMessage,
    ImageMessage,
    InboundMessage,
    InteractiveMessage,
    LocationMessage,
    MediaBody,
    MessageType,
    StickerMessage,
    TextMessage,
    VideoMessage,
)


@dataclass(frozen=True)
class ClassifiedMessage:
    """Summary and type tag of one inbound unit, plus media reference if any."""

    summary: str
    message_type: MessageType
    media_id: str | None = None
    media_mime_type: str | None = None


def _media(summary: str, message_type: MessageType, media: MediaBody) -> ClassifiedMessage:
    return ClassifiedMessage(
        summary=summary,
        message_type=message_type,
        media_id=media.id,
        media_mime_type=media.mime_type,
    )


def _type_tag(raw_type: str | None) -> MessageType:
    try:
        return MessageType(raw_type)
    except ValueError:
        return MessageType.UNKNOWN


def classify_message(unit: InboundMessage) -> ClassifiedMessage:
    """
    Classify an inbound message unit.

    Args:
        unit: A validated unit (see parse_inbound_message)

    Returns:
        ClassifiedMessage with the display summary and type tag
    """
    if isinstance(unit, TextMessage):
        return ClassifiedMessage(unit.text.body or "", MessageType.TEXT)

    if isinstance(unit, ImageMessage):
        return _media(unit.image.caption or "[Image]", MessageType.IMAGE, unit.image)

    if isinstance(unit, VideoMessage):
        return _media("[Video]", MessageType.VIDEO, unit.video)

    if isinstance(unit, AudioMessage):
        return _media("[Audio]", MessageType.AUDIO, unit.audio)

    if isinstance(unit, DocumentMessage):
        filename = unit.document.filename or "file"
        return _media(f"[Document: {filename}]", MessageType.DOCUMENT, unit.document)

    if isinstance(unit, StickerMessage):
        return _media("[sticker]", MessageType.STICKER, unit.sticker)

    if isinstance(unit, LocationMessage):
        return ClassifiedMessage("[Location]", MessageType.LOCATION)

    if isinstance(unit, InteractiveMessage):
        interactive = unit.interactive
        title = None
        if interactive.button_reply and interactive.button_reply.title:
            title = interactive.button_reply.title
        elif interactive.list_reply and interactive.list_reply.title:
            title = interactive.list_reply.title
        return ClassifiedMessage(title or "[Interactive]", MessageType.INTERACTIVE)

    raw_type = getattr(unit, "type", None) or "unknown"
    return ClassifiedMessage(f"[{raw_type}]", _type_tag(raw_type))
