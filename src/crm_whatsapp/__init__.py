"""
WhatsApp CRM Pipeline

Webhook ingestion, delivery status reconciliation and outbound sending
for WhatsApp Business numbers, scoped per workspace.

Usage:
    from crm_whatsapp.service import InboundIngestor, OutboundDispatcher

    # Webhook path
    ingestor = InboundIngestor(db)
    ingestor.ingest(webhook_body)

    # Send path
    dispatcher = OutboundDispatcher(db, provider=provider)
    result = await dispatcher.send(request)
"""

__version__ = "0.1.0"
