"""Stub WhatsApp provider for development."""

from crm_whatsapp.providers.stub.client import StubWhatsAppProvider

__all__ = ["StubWhatsAppProvider"]
