"""
WhatsApp Pipeline Services

Inbound ingestion, status reconciliation and outbound dispatch.
"""

from crm_whatsapp.service.classifier import ClassifiedMessage, classify_message
from crm_whatsapp.service.exceptions import (
    NumberNotFoundError,
    PipelineError,
    SendFailedError,
    ValidationError,
)
from crm_whatsapp.service.inbound_handler import InboundIngestor
from crm_whatsapp.service.outbound_handler import OutboundDispatcher, SendResult
from crm_whatsapp.service.status_reconciler import StatusReconciler

__all__ = [
    "ClassifiedMessage",
    "classify_message",
    "InboundIngestor",
    "StatusReconciler",
    "OutboundDispatcher",
    "SendResult",
    "PipelineError",
    "ValidationError",
    "NumberNotFoundError",
    "SendFailedError",
]
