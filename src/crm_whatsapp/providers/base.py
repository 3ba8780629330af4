"""
WhatsApp Provider Base

Abstract interface for WhatsApp API providers.
Implementations: Meta Cloud API, Stub (for development).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ProviderError(Exception):
    """
    Error from WhatsApp provider.

    code/subcode/error_type mirror the Graph API `error` object and feed
    translate_provider_error.
    """

    def __init__(
        self,
        message: str,
        code: int | str | None = None,
        subcode: int | None = None,
        error_type: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.subcode = subcode
        self.error_type = error_type
        self.details = details or {}
        self.retryable = retryable
        self.status_code = status_code

    @classmethod
    def from_graph_error(cls, error: dict[str, Any], status_code: int) -> "ProviderError":
        """Build from the `error` object of a Graph API error response."""
        return cls(
            message=error.get("message") or "Unknown error",
            code=error.get("code", status_code),
            subcode=error.get("error_subcode"),
            error_type=error.get("type"),
            details=error,
            retryable=status_code >= 500,
            status_code=status_code,
        )


@dataclass
class ProviderResponse:
    """
    Response from provider after sending a message.
    """

    success: bool
    message_id: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


class WhatsAppProvider(ABC):
    """
    Abstract interface for WhatsApp API providers.

    Implementations must handle:
    - Sending a rendered message body
    - Resolving media IDs to download URLs
    """

    @abstractmethod
    async def send_message(
        self,
        phone_number_id: str,
        access_token: str,
        payload: dict[str, Any],
    ) -> ProviderResponse:
        """
        Send a message already rendered to the provider wire shape.

        Args:
            phone_number_id: Business phone number ID
            access_token: Access token for this number
            payload: Wire body (messaging_product, to, type, ...)

        Returns:
            ProviderResponse with message ID if successful

        Raises:
            ProviderError: If the provider rejects the message or is unreachable
        """
        ...

    @abstractmethod
    async def get_media_url(
        self,
        media_id: str,
        access_token: str,
    ) -> str | None:
        """
        Get the download URL for a media file.

        Args:
            media_id: Media ID from the message
            access_token: Access token

        Returns:
            Download URL or None if failed
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None
