"""
WhatsApp Event Envelope

Standard wrapper for events published by the pipeline.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4


@dataclass
class WhatsAppEnvelope:
    """
    Event envelope written to Redis Streams.

    Attributes:
        event_id: Unique identifier for this event instance
        event_type: WhatsAppEventType value
        workspace_id: Tenant isolation key
        occurred_at: When the event occurred (UTC)
        payload: Event-specific data
        version: Event contract version
        correlation_id: Optional ID for tracing (provider message ID)
    """

    event_id: UUID
    event_type: str
    workspace_id: UUID
    occurred_at: datetime
    payload: dict[str, Any]
    version: int = 1
    correlation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        event_type: str,
        workspace_id: UUID,
        payload: dict[str, Any],
        correlation_id: str | None = None,
    ) -> "WhatsAppEnvelope":
        """Create a new envelope with auto-generated event_id and timestamp."""
        return cls(
            event_id=uuid4(),
            event_type=event_type,
            workspace_id=workspace_id,
            occurred_at=datetime.now(timezone.utc),
            payload=payload,
            correlation_id=correlation_id,
        )

    @classmethod
    def from_stream_message(cls, msg_id: str, data: dict[str, str]) -> "WhatsAppEnvelope":
        """Parse a Redis Stream message into an envelope."""
        metadata = json.loads(data.get("metadata", "{}"))
        metadata["stream_msg_id"] = msg_id

        return cls(
            event_id=UUID(data["event_id"]),
            event_type=data["event_type"],
            workspace_id=UUID(data["workspace_id"]),
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
            version=int(data.get("version", "1")),
            payload=json.loads(data.get("payload", "{}")),
            correlation_id=data.get("correlation_id") or None,
            metadata=metadata,
        )

    def to_stream_data(self) -> dict[str, str]:
        """Convert to dictionary suitable for Redis Stream (all string values)."""
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "workspace_id": str(self.workspace_id),
            "occurred_at": self.occurred_at.isoformat(),
            "version": str(self.version),
            "payload": json.dumps(self.payload, default=str),
            "correlation_id": self.correlation_id or "",
            "metadata": json.dumps(self.metadata, default=str),
        }
