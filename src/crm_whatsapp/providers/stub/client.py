"""
Stub WhatsApp Provider

Development provider that logs all operations without making real API calls.
Useful for local development and testing.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from crm_whatsapp.providers.base import (
    ProviderError,
    ProviderResponse,
    WhatsAppProvider,
)

logger = logging.getLogger(__name__)


class StubWhatsAppProvider(WhatsAppProvider):
    """
    Stub provider for development and testing.

    - Records every outbound body in `sent_messages`
    - Generates fake message IDs
    - Can be configured to fail every send with a given provider error
    """

    def __init__(self, failure: ProviderError | None = None):
        self.failure = failure
        self.sent_messages: list[dict[str, Any]] = []

    async def send_message(
        self,
        phone_number_id: str,
        access_token: str,
        payload: dict[str, Any],
    ) -> ProviderResponse:
        """Record and return success for any message."""
        if self.failure is not None:
            logger.info(
                f"[STUB] Simulating send failure",
                extra={"to": payload.get("to"), "code": self.failure.code},
            )
            raise self.failure

        message_id = f"stub_msg_{uuid4().hex[:16]}"

        self.sent_messages.append({
            "phone_number_id": phone_number_id,
            "payload": payload,
            "message_id": message_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

        logger.info(
            f"[STUB] Sending {payload.get('type')} message",
            extra={"to": payload.get("to"), "message_id": message_id},
        )

        return ProviderResponse(
            success=True,
            message_id=message_id,
            raw_response={"messages": [{"id": message_id}], "stub": True},
        )

    async def get_media_url(
        self,
        media_id: str,
        access_token: str,
    ) -> str | None:
        """Return a fake media URL."""
        return f"https://stub.local/media/{media_id}"
