"""
WhatsApp Stream Producer

Publishes pipeline events to Redis Streams for dashboard consumers.
Publishing is best effort: a Redis failure is logged and never fails the pipeline.
"""

import logging
from typing import Any
from uuid import UUID

import redis

from crm_whatsapp.contracts.envelope import WhatsAppEnvelope
from crm_whatsapp.contracts.event_types import WhatsAppEventType

logger = logging.getLogger(__name__)

WHATSAPP_EVENTS_STREAM = "events:whatsapp"


class WhatsAppStreamProducer:
    """
    Producer for publishing WhatsApp events to Redis Streams.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        stream: str = WHATSAPP_EVENTS_STREAM,
        max_len: int = 100000,
    ):
        self.redis = redis_client
        self.stream = stream
        self.max_len = max_len

    def publish_inbound(
        self,
        workspace_id: UUID,
        payload: dict[str, Any],
        correlation_id: str | None = None,
    ) -> str | None:
        """Publish an inbound message event."""
        return self.publish(WhatsAppEventType.INBOUND_RECEIVED, workspace_id, payload, correlation_id)

    def publish_status(
        self,
        workspace_id: UUID,
        payload: dict[str, Any],
        correlation_id: str | None = None,
    ) -> str | None:
        """Publish a delivery status event."""
        return self.publish(WhatsAppEventType.STATUS_UPDATED, workspace_id, payload, correlation_id)

    def publish_outbound(
        self,
        workspace_id: UUID,
        payload: dict[str, Any],
        correlation_id: str | None = None,
    ) -> str | None:
        """Publish an outbound sent event."""
        return self.publish(WhatsAppEventType.OUTBOUND_SENT, workspace_id, payload, correlation_id)

    def publish(
        self,
        event_type: WhatsAppEventType,
        workspace_id: UUID,
        payload: dict[str, Any],
        correlation_id: str | None = None,
    ) -> str | None:
        """
        Publish an event envelope.

        Returns:
            Stream message ID, None if Redis rejected the write
        """
        envelope = WhatsAppEnvelope.create(
            event_type=event_type.value,
            workspace_id=workspace_id,
            payload=payload,
            correlation_id=correlation_id,
        )

        try:
            return self._publish(envelope)
        except redis.RedisError as e:
            logger.warning(
                f"Failed to publish {event_type.value}: {e}",
                extra={"stream": self.stream, "event_id": str(envelope.event_id)},
            )
            return None

    def _publish(self, envelope: WhatsAppEnvelope) -> str:
        data = envelope.to_stream_data()

        msg_id = self.redis.xadd(
            self.stream,
            data,
            maxlen=self.max_len,
            approximate=True,
        )

        logger.debug(
            f"Published to {self.stream}",
            extra={
                "stream": self.stream,
                "event_type": envelope.event_type,
                "event_id": str(envelope.event_id),
                "msg_id": msg_id,
            },
        )

        return msg_id


def get_event_producer() -> WhatsAppStreamProducer | None:
    """Build the producer from settings, None when events are disabled."""
    from crm_whatsapp.core.redis import get_redis_client
    from crm_whatsapp.core.settings import get_settings

    settings = get_settings()
    if not settings.EVENTS_ENABLED:
        return None

    return WhatsAppStreamProducer(get_redis_client(), stream=settings.EVENTS_STREAM)
