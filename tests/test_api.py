"""
Tests for the HTTP surface.
"""

import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from crm_whatsapp.api.main import app, get_producer, get_whatsapp_provider
from crm_whatsapp.core.db import get_db
from crm_whatsapp.core.settings import Settings, get_settings
from crm_whatsapp.persistence.models import Message, WebhookLog
from crm_whatsapp.providers.base import ProviderError
from crm_whatsapp.providers.stub import StubWhatsAppProvider

from conftest import build_webhook, text_unit

VERIFY_TOKEN = "verify-me"
APP_SECRET = "app-secret"


@pytest.fixture
def settings():
    return Settings(WHATSAPP_VERIFY_TOKEN=VERIFY_TOKEN, WHATSAPP_APP_SECRET="", EVENTS_ENABLED=False)


@pytest.fixture
def stub_provider():
    return StubWhatsAppProvider()


@pytest.fixture
def client(db_session, settings, stub_provider):
    def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_whatsapp_provider] = lambda: stub_provider
    app.dependency_overrides[get_producer] = lambda: None

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


class TestWebhookVerification:
    """GET handshake."""

    def test_valid_token_echoes_challenge(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": VERIFY_TOKEN, "hub.challenge": "1158201444"},
        )

        assert response.status_code == 200
        assert response.text == "1158201444"
        assert response.headers["content-type"].startswith("text/plain")

    def test_alias_path(self, client):
        response = client.get(
            "/webhooks/whatsapp",
            params={"hub.mode": "subscribe", "hub.verify_token": VERIFY_TOKEN, "hub.challenge": "42"},
        )
        assert response.text == "42"

    def test_wrong_token_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "42"},
        )
        assert response.status_code == 403


class TestWebhookReceive:
    """POST webhook always answers 200."""

    def test_processes_message(self, client, db_session, whatsapp_number):
        response = client.post("/webhook", json=build_webhook(messages=[text_unit(wa_id="wamid.API")]))

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert db_session.query(Message).one().wa_message_id == "wamid.API"

    def test_invalid_json_still_200(self, client, db_session):
        response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert db_session.query(WebhookLog).count() == 0

    def test_non_object_body_still_200(self, client):
        response = client.post("/webhook", json=["a", "b"])
        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_bad_signature_rejected_with_200(self, client, settings, db_session, whatsapp_number):
        settings.WHATSAPP_APP_SECRET = APP_SECRET

        response = client.post(
            "/webhook",
            content=json.dumps(build_webhook(messages=[text_unit()])).encode(),
            headers={"Content-Type": "application/json", "X-Hub-Signature-256": "sha256=deadbeef"},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert db_session.query(Message).count() == 0
        log = db_session.query(WebhookLog).one()
        assert log.processed is False
        assert log.error_message == "Invalid signature"
        assert log.payload["entry"][0]["id"] == "WABA_123456"

    def test_bad_signature_non_json_body_logged_raw(self, client, settings, db_session):
        settings.WHATSAPP_APP_SECRET = APP_SECRET

        response = client.post("/webhook", content=b"{not json", headers={"X-Hub-Signature-256": "sha256=00"})

        assert response.json() == {"received": True}
        log = db_session.query(WebhookLog).one()
        assert log.payload == {"raw": "{not json"}
        assert log.error_message == "Invalid signature"

    def test_good_signature_accepted(self, client, settings, db_session, whatsapp_number):
        settings.WHATSAPP_APP_SECRET = APP_SECRET
        body = json.dumps(build_webhook(messages=[text_unit()])).encode()
        signature = hmac.new(APP_SECRET.encode(), body, hashlib.sha256).hexdigest()

        response = client.post(
            "/webhook",
            content=body,
            headers={"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={signature}"},
        )

        assert response.json() == {"success": True}
        assert db_session.query(Message).count() == 1


class TestSendMessage:
    """POST /messages."""

    def test_send_text(self, client, stub_provider, whatsapp_number):
        response = client.post(
            "/messages",
            json={
                "whatsapp_number_id": str(whatsapp_number.id),
                "to": "+1234567890",
                "message_type": "text",
                "content": "Hello",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message_id"] == stub_provider.sent_messages[0]["message_id"]
        assert data["message"]["direction"] == "outbound"
        assert data["message"]["status"] == "sent"
        assert stub_provider.sent_messages[0]["payload"]["to"] == "1234567890"

    def test_missing_content_is_400(self, client, stub_provider, whatsapp_number):
        response = client.post(
            "/messages",
            json={"whatsapp_number_id": str(whatsapp_number.id), "to": "+1234567890", "message_type": "text"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Content is required for text messages"}
        assert stub_provider.sent_messages == []

    def test_malformed_request_is_400(self, client):
        response = client.post("/messages", json={"to": "+1234567890", "message_type": "text"})

        assert response.status_code == 400
        assert "whatsapp_number_id" in response.json()["error"]

    def test_workspace_header_scopes_number(self, client, whatsapp_number):
        response = client.post(
            "/messages",
            headers={"X-Workspace-Id": "00000000-0000-0000-0000-000000000001"},
            json={
                "whatsapp_number_id": str(whatsapp_number.id),
                "to": "+1234567890",
                "message_type": "text",
                "content": "Hello",
            },
        )

        assert response.status_code == 404
        assert response.json() == {"error": "WhatsApp number not found or access denied"}

    def test_provider_error_is_502(self, client, stub_provider, whatsapp_number):
        stub_provider.failure = ProviderError("(#131026) Message undeliverable", code=131026)

        response = client.post(
            "/messages",
            json={
                "whatsapp_number_id": str(whatsapp_number.id),
                "to": "+1234567890",
                "message_type": "text",
                "content": "Hello",
            },
        )

        assert response.status_code == 502
        assert "not on WhatsApp" in response.json()["error"]

    def test_storage_error_is_500_envelope(self, client, stub_provider, whatsapp_number, monkeypatch):
        from sqlalchemy.exc import OperationalError

        from crm_whatsapp.persistence.repo import WhatsAppRepository

        def broken_get_number(self, number_id, workspace_id=None):
            raise OperationalError("SELECT", {}, Exception("db hiccup"))

        monkeypatch.setattr(WhatsAppRepository, "get_number", broken_get_number)

        response = client.post(
            "/messages",
            json={
                "whatsapp_number_id": str(whatsapp_number.id),
                "to": "+1234567890",
                "message_type": "text",
                "content": "Hello",
            },
        )

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"error": "Failed to send the WhatsApp message"}
        assert stub_provider.sent_messages == []

    def test_unexpected_error_is_500_envelope(self, client, whatsapp_number):
        class ExplodingProvider(StubWhatsAppProvider):
            async def send_message(self, phone_number_id, access_token, payload):
                raise RuntimeError("boom")

        app.dependency_overrides[get_whatsapp_provider] = lambda: ExplodingProvider()

        with TestClient(app, raise_server_exceptions=False) as raw_client:
            response = raw_client.post(
                "/messages",
                json={
                    "whatsapp_number_id": str(whatsapp_number.id),
                    "to": "+1234567890",
                    "message_type": "text",
                    "content": "Hello",
                },
            )

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy", "service": "crm-whatsapp"}
