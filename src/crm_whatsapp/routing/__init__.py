"""
WhatsApp Routing

Number, contact and conversation resolution.
"""

from crm_whatsapp.routing.contacts import ContactResolver
from crm_whatsapp.routing.conversation import ConversationResolver
from crm_whatsapp.routing.number_resolver import NumberResolver
from crm_whatsapp.routing.phone import normalize_phone, phone_variants

__all__ = [
    "ContactResolver",
    "ConversationResolver",
    "NumberResolver",
    "normalize_phone",
    "phone_variants",
]
