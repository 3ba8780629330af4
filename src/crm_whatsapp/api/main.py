"""
WhatsApp CRM Pipeline API

FastAPI app for the webhook and send paths.

Responsibilities:
- Answer the Meta subscription handshake
- Verify webhook signatures (when an app secret is configured)
- Ingest inbound messages and delivery statuses
- Send outbound messages and translate provider errors
- Always return 200 to the provider (failing webhooks get disabled)
"""

import json
import logging
from collections.abc import AsyncIterator
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from crm_whatsapp.contracts.payloads import SendMessageRequest
from crm_whatsapp.core.db import get_db
from crm_whatsapp.core.logging import setup_logging
from crm_whatsapp.core.settings import Settings, get_settings
from crm_whatsapp.providers import WhatsAppProvider, get_provider
from crm_whatsapp.providers.meta_cloud.webhook import validate_signature, verify_challenge
from crm_whatsapp.service.exceptions import PipelineError
from crm_whatsapp.service.inbound_handler import InboundIngestor
from crm_whatsapp.service.outbound_handler import OutboundDispatcher
from crm_whatsapp.streams.producer import WhatsAppStreamProducer, get_event_producer

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="WhatsApp CRM Pipeline",
    description="Receives WhatsApp webhooks and sends WhatsApp messages",
    version="0.1.0",
)


async def get_whatsapp_provider() -> AsyncIterator[WhatsAppProvider]:
    """Provider for one request, closed afterwards."""
    provider = get_provider()
    try:
        yield provider
    finally:
        await provider.close()


def get_producer() -> WhatsAppStreamProducer | None:
    """Event producer, None when events are disabled."""
    return get_event_producer()


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"error": f"{location}: {message}" if location else message},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "crm-whatsapp"}


@app.get("/webhook")
@app.get("/webhooks/whatsapp")
async def verify_webhook(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge"),
    settings: Settings = Depends(get_settings),
):
    """
    Handle Meta webhook verification.

    Meta sends a GET request with hub.mode, hub.verify_token, and hub.challenge.
    We must return hub.challenge if the token matches.
    """
    logger.info(
        f"Webhook verification request",
        extra={
            "mode": hub_mode,
            "token_received": bool(hub_verify_token),
        },
    )

    challenge = verify_challenge(
        mode=hub_mode,
        token=hub_verify_token,
        challenge=hub_challenge,
        verify_token=settings.WHATSAPP_VERIFY_TOKEN,
    )

    if challenge is not None:
        logger.info("Webhook verification successful")
        return Response(content=challenge, media_type="text/plain")

    logger.warning("Webhook verification failed")
    raise HTTPException(status_code=403, detail="Verification failed")


@app.post("/webhook")
@app.post("/webhooks/whatsapp")
async def receive_webhook(
    request: Request,
    db: Session = Depends(get_db),
    producer: WhatsAppStreamProducer | None = Depends(get_producer),
    settings: Settings = Depends(get_settings),
):
    """
    Receive a webhook from Meta Cloud API.

    Flow:
    1. Validate signature (if WHATSAPP_APP_SECRET is set); rejected bodies are logged unprocessed
    2. Parse JSON
    3. Log, then process messages and statuses
    4. Return 200 regardless of the outcome
    """
    body = await request.body()

    if settings.WHATSAPP_APP_SECRET:
        signature = request.headers.get("X-Hub-Signature-256", "")
        if not validate_signature(body, signature, settings.WHATSAPP_APP_SECRET):
            logger.warning("Invalid Meta webhook signature")
            InboundIngestor(db, producer=producer).log_rejected(body, reason="Invalid signature")
            return {"received": True}

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Invalid JSON payload")
        return {"received": True}

    if not isinstance(payload, dict):
        logger.warning("Webhook body is not a JSON object")
        return {"received": True}

    try:
        summary = InboundIngestor(db, producer=producer).ingest(payload)
    except Exception as e:
        logger.error(f"Error processing webhook: {e}", exc_info=True)
        # Still return 200 to prevent Meta from disabling the webhook
        return {"received": True}

    logger.info(
        f"Webhook processed",
        extra={
            "messages": len(summary["messages"]),
            "statuses": len(summary["statuses"]),
            "skipped_changes": summary["skipped_changes"],
        },
    )

    return {"success": True}


@app.post("/messages")
async def send_message(
    request: SendMessageRequest,
    x_workspace_id: UUID | None = Header(None),
    db: Session = Depends(get_db),
    provider: WhatsAppProvider = Depends(get_whatsapp_provider),
    producer: WhatsAppStreamProducer | None = Depends(get_producer),
    settings: Settings = Depends(get_settings),
):
    """
    Send a WhatsApp message.

    Errors are returned as {"error": <message>} with the status of the
    PipelineError (400 validation, 404 unknown number, 502 provider, 500 storage).
    """
    dispatcher = OutboundDispatcher(
        db,
        provider=provider,
        encryption_key=settings.WHATSAPP_ENCRYPTION_KEY,
        producer=producer,
    )

    result = await dispatcher.send(request, workspace_id=x_workspace_id)

    return {
        "success": True,
        "message_id": result.message_id,
        "message": result.message.to_dict(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8090)
