"""
WhatsApp Providers

Provider implementations for different WhatsApp APIs.
Supports Meta Cloud API (production) and Stub (development).
"""

from crm_whatsapp.providers.base import (
    ProviderError,
    ProviderResponse,
    WhatsAppProvider,
)

__all__ = [
    "WhatsAppProvider",
    "ProviderResponse",
    "ProviderError",
    "get_provider",
]


def get_provider(provider_type: str | None = None, timeout: float | None = None) -> WhatsAppProvider:
    """
    Get a provider instance by type.

    Args:
        provider_type: "meta" or "stub" (defaults to WHATSAPP_PROVIDER)
        timeout: Request timeout in seconds (defaults to PROVIDER_TIMEOUT_SECONDS)

    Returns:
        Provider instance
    """
    from crm_whatsapp.core.settings import get_settings

    settings = get_settings()
    provider_type = provider_type or settings.WHATSAPP_PROVIDER

    if provider_type == "meta":
        from crm_whatsapp.providers.meta_cloud.client import MetaCloudWhatsAppProvider

        return MetaCloudWhatsAppProvider(
            timeout=timeout or settings.PROVIDER_TIMEOUT_SECONDS,
            api_version=settings.GRAPH_API_VERSION,
        )

    if provider_type == "stub":
        from crm_whatsapp.providers.stub.client import StubWhatsAppProvider

        return StubWhatsAppProvider()

    raise ValueError(f"Unknown provider type: {provider_type}")
