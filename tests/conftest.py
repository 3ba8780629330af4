"""
Pytest fixtures for pipeline tests.

Tests run against an in-memory SQLite database and a recording fake of the
Redis client; no external services are needed.
"""

import os
from uuid import UUID

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EVENTS_ENABLED", "false")

from crm_whatsapp.persistence.models import WhatsAppBase, WhatsAppNumber  # noqa: E402
from crm_whatsapp.streams.producer import WhatsAppStreamProducer  # noqa: E402

PHONE_NUMBER_ID = "PHONE_123"


class FakeRedis:
    """Records XADD calls like a Redis client would receive them."""

    def __init__(self):
        self.entries: list[tuple[str, dict[str, str]]] = []

    def xadd(self, stream, data, maxlen=None, approximate=True):
        self.entries.append((stream, data))
        return f"{len(self.entries)}-0"

    def events(self) -> list[str]:
        return [data["event_type"] for _, data in self.entries]


@pytest.fixture
def db_engine():
    """In-memory database shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    WhatsAppBase.metadata.create_all(engine)
    yield engine
    WhatsAppBase.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Create database session."""
    Session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def sample_workspace_id():
    """Sample workspace UUID."""
    return UUID("12345678-1234-1234-1234-123456789012")


@pytest.fixture
def sample_phone():
    """Sample phone number."""
    return "+5511999999999"


@pytest.fixture
def whatsapp_number(db_session, sample_workspace_id):
    """A registered number with a plaintext token (no encryption key)."""
    number = WhatsAppNumber(
        workspace_id=sample_workspace_id,
        phone_number_id=PHONE_NUMBER_ID,
        waba_id="WABA_123456",
        display_number="+5511000000000",
        access_token_encrypted="test-access-token",
    )
    db_session.add(number)
    db_session.commit()
    return number


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def producer(fake_redis):
    """Event producer writing to the fake Redis."""
    return WhatsAppStreamProducer(fake_redis)


def build_webhook(messages=None, statuses=None, phone_number_id=PHONE_NUMBER_ID, profile_name="John Doe"):
    """Build a Meta webhook body with one `messages` change."""
    value = {
        "messaging_product": "whatsapp",
        "metadata": {
            "display_phone_number": "5511000000000",
            "phone_number_id": phone_number_id,
        },
    }
    if profile_name is not None:
        value["contacts"] = [{"profile": {"name": profile_name}, "wa_id": "5511888888888"}]
    if messages is not None:
        value["messages"] = messages
    if statuses is not None:
        value["statuses"] = statuses

    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_123456",
                "changes": [{"field": "messages", "value": value}],
            }
        ],
    }


def text_unit(wa_id="wamid.TEXT1", sender="5511888888888", body="Hello", timestamp="1704067200"):
    """One inbound text message unit."""
    return {
        "from": sender,
        "id": wa_id,
        "timestamp": timestamp,
        "type": "text",
        "text": {"body": body},
    }


@pytest.fixture
def webhook_builder():
    return build_webhook


@pytest.fixture
def text_unit_builder():
    return text_unit
