"""
Meta Cloud API WhatsApp Provider

Production provider for WhatsApp Business Cloud API.
Posts rendered message bodies to the Graph API per-number messages endpoint.
"""

import logging
from typing import Any

import httpx

from crm_whatsapp.providers.base import (
    ProviderError,
    ProviderResponse,
    WhatsAppProvider,
)

logger = logging.getLogger(__name__)

# Meta Graph API configuration
GRAPH_API_VERSION = "v21.0"
GRAPH_API_HOST = "https://graph.facebook.com"


class MetaCloudWhatsAppProvider(WhatsAppProvider):
    """
    Meta Cloud API provider for WhatsApp Business.

    Every request carries a bounded timeout; nothing is retried here.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        api_version: str = GRAPH_API_VERSION,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.base_url = f"{GRAPH_API_HOST}/{api_version}"
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _make_request(
        self,
        method: str,
        url: str,
        access_token: str,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated API request."""
        client = await self._get_client()

        headers = {"Authorization": f"Bearer {access_token}"}

        try:
            if method.upper() == "GET":
                response = await client.get(url, headers=headers)
            else:
                response = await client.post(url, headers=headers, json=json_data)
        except httpx.TimeoutException as e:
            logger.error(f"Graph API request timed out: {e}")
            raise ProviderError(
                message=f"Request to WhatsApp timed out after {self.timeout}s",
                code="TIMEOUT",
                retryable=True,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"HTTP request failed: {e}")
            raise ProviderError(
                message=f"HTTP request failed: {e}",
                code="HTTP_ERROR",
                retryable=True,
            ) from e

        try:
            response_data = response.json()
        except ValueError:
            response_data = {}

        if response.status_code >= 400:
            error = response_data.get("error") if isinstance(response_data, dict) else None
            raise ProviderError.from_graph_error(
                error if isinstance(error, dict) else {"message": response.text or None},
                response.status_code,
            )

        return response_data

    async def send_message(
        self,
        phone_number_id: str,
        access_token: str,
        payload: dict[str, Any],
    ) -> ProviderResponse:
        """Send a rendered message via Graph API."""
        url = f"{self.base_url}/{phone_number_id}/messages"

        response = await self._make_request("POST", url, access_token, payload)
        messages = response.get("messages") or [{}]
        message_id = messages[0].get("id")

        if not message_id:
            raise ProviderError(
                message="WhatsApp accepted the request but returned no message id",
                code="NO_MESSAGE_ID",
                details=response,
            )

        logger.info(
            f"Sent {payload.get('type')} message via Meta API",
            extra={"to": payload.get("to"), "message_id": message_id},
        )

        return ProviderResponse(
            success=True,
            message_id=message_id,
            raw_response=response,
        )

    async def get_media_url(
        self,
        media_id: str,
        access_token: str,
    ) -> str | None:
        """Get the download URL for a media file."""
        url = f"{self.base_url}/{media_id}"

        try:
            response = await self._make_request("GET", url, access_token)
            return response.get("url")
        except ProviderError as e:
            logger.error(f"Failed to get media URL: {e}", extra={"media_id": media_id})
            return None
