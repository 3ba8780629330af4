"""Meta Cloud API WhatsApp provider."""

from crm_whatsapp.providers.meta_cloud.client import MetaCloudWhatsAppProvider
from crm_whatsapp.providers.meta_cloud.errors import translate_exception, translate_provider_error
from crm_whatsapp.providers.meta_cloud.templates import build_template_components
from crm_whatsapp.providers.meta_cloud.webhook import validate_signature, verify_challenge

__all__ = [
    "MetaCloudWhatsAppProvider",
    "build_template_components",
    "translate_exception",
    "translate_provider_error",
    "validate_signature",
    "verify_challenge",
]
