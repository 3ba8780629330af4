"""
Meta Webhook Utilities

Helper functions for processing Meta Cloud API webhooks.
"""

import hashlib
import hmac
import logging
from collections.abc import Iterator

from pydantic import ValidationError

from crm_whatsapp.contracts.payloads import WebhookChange, WebhookEntry, WebhookPayload

logger = logging.getLogger(__name__)


def validate_signature(
    payload: bytes,
    signature_header: str | None,
    app_secret: str,
) -> bool:
    """
    Validate Meta webhook signature.

    Args:
        payload: Raw request body bytes
        signature_header: X-Hub-Signature-256 header value
        app_secret: Facebook App Secret

    Returns:
        True if signature is valid
    """
    if not signature_header:
        logger.warning("Missing signature header")
        return False

    if not signature_header.startswith("sha256="):
        logger.warning("Invalid signature format")
        return False

    expected = signature_header[7:]

    computed = hmac.new(
        app_secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(computed, expected)


def verify_challenge(
    mode: str | None,
    token: str | None,
    challenge: str | None,
    verify_token: str,
) -> str | None:
    """
    Handle the subscription handshake.

    Returns:
        The challenge to echo back, or None if the handshake is refused
    """
    if mode == "subscribe" and verify_token and token == verify_token:
        return challenge or ""
    return None


def iter_message_changes(payload: WebhookPayload) -> Iterator[WebhookChange | None]:
    """
    Yield every change with field == "messages", in body order.

    A malformed entry or change yields None in its place so the caller can
    count it and move on to its siblings.
    """
    for raw_entry in payload.entry:
        try:
            entry = WebhookEntry.model_validate(raw_entry)
        except ValidationError as e:
            logger.warning(f"Skipping malformed webhook entry: {e.error_count()} validation errors")
            yield None
            continue

        for raw_change in entry.changes:
            try:
                change = WebhookChange.model_validate(raw_change)
            except ValidationError as e:
                logger.warning(f"Skipping malformed webhook change: {e.error_count()} validation errors")
                yield None
                continue

            if change.field != "messages":
                continue
            yield change
