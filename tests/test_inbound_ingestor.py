"""
Tests for inbound webhook ingestion.
"""

import json
from datetime import datetime

from sqlalchemy.exc import OperationalError

from crm_whatsapp.persistence.models import (
    Contact,
    Conversation,
    Message,
    MessageDirection,
    MessageStatus,
    WebhookLog,
)
from crm_whatsapp.persistence.repo import WhatsAppRepository
from crm_whatsapp.routing.number_resolver import NumberResolver
from crm_whatsapp.service.inbound_handler import InboundIngestor

from conftest import build_webhook, text_unit


class TestInboundIngestor:
    """Tests for webhook body processing."""

    def test_new_phone_creates_contact_conversation_and_message(self, db_session, whatsapp_number):
        body = build_webhook(messages=[text_unit(wa_id="wamid.A", sender="5511777777777", body="Oi")])

        summary = InboundIngestor(db_session).ingest(body)

        result = summary["messages"][0]
        assert result["status"] == "processed"
        assert result["is_new_contact"] is True
        assert result["is_new_conversation"] is True

        contact = db_session.query(Contact).one()
        assert contact.phone == "5511777777777"
        assert contact.name == "John Doe"

        conversation = db_session.query(Conversation).one()
        assert conversation.unread_count == 1
        assert conversation.last_message_text == "Oi"
        assert conversation.contact_name == "John Doe"

        message = db_session.query(Message).one()
        assert message.direction == MessageDirection.INBOUND.value
        assert message.status == MessageStatus.DELIVERED.value
        assert message.wa_message_id == "wamid.A"
        assert message.content == "Oi"
        assert message.conversation_id == conversation.id
        assert message.workspace_id == whatsapp_number.workspace_id

    def test_second_message_reuses_conversation(self, db_session, whatsapp_number):
        ingestor = InboundIngestor(db_session)
        ingestor.ingest(build_webhook(messages=[text_unit(wa_id="wamid.A", body="1")]))

        summary = ingestor.ingest(build_webhook(messages=[text_unit(wa_id="wamid.B", sender="+5511888888888", body="2")]))

        assert summary["messages"][0]["is_new_contact"] is False
        assert summary["messages"][0]["is_new_conversation"] is False
        assert db_session.query(Contact).count() == 1
        conversation = db_session.query(Conversation).one()
        db_session.refresh(conversation)
        assert conversation.unread_count == 2
        assert conversation.last_message_text == "2"

    def test_malformed_unit_does_not_block_siblings(self, db_session, whatsapp_number):
        body = build_webhook(messages=[{"id": "wamid.BAD", "type": "text"}, text_unit(wa_id="wamid.GOOD")])

        summary = InboundIngestor(db_session).ingest(body)

        assert [r["status"] for r in summary["messages"]] == ["skipped", "processed"]
        assert summary["messages"][0]["reason"] == "invalid_unit"
        assert db_session.query(Message).one().wa_message_id == "wamid.GOOD"

    def test_storage_failure_does_not_block_siblings(self, db_session, whatsapp_number, monkeypatch):
        """A unit whose dedupe lookup fails is rolled back; the next unit is still stored."""
        lookup = WhatsAppRepository.get_message_by_wa_id

        def flaky_lookup(self, wa_message_id):
            if wa_message_id == "wamid.BAD":
                raise OperationalError("SELECT", {}, Exception("db hiccup"))
            return lookup(self, wa_message_id)

        monkeypatch.setattr(WhatsAppRepository, "get_message_by_wa_id", flaky_lookup)
        body = build_webhook(messages=[text_unit(wa_id="wamid.BAD"), text_unit(wa_id="wamid.GOOD")])

        summary = InboundIngestor(db_session).ingest(body)

        assert [r["status"] for r in summary["messages"]] == ["failed", "processed"]
        assert "db hiccup" in summary["messages"][0]["error"]
        assert db_session.query(Message).one().wa_message_id == "wamid.GOOD"
        log = db_session.query(WebhookLog).one()
        assert log.processed is True
        assert log.error_message == "1 unit(s) failed"

    def test_number_lookup_failure_skips_only_that_change(self, db_session, whatsapp_number, monkeypatch):
        resolve = NumberResolver.resolve_from_phone_number_id

        def flaky_resolve(self, phone_number_id):
            if phone_number_id == "PHONE_DOWN":
                raise OperationalError("SELECT", {}, Exception("db hiccup"))
            return resolve(self, phone_number_id)

        monkeypatch.setattr(NumberResolver, "resolve_from_phone_number_id", flaky_resolve)
        body = build_webhook(messages=[text_unit(wa_id="wamid.OK")])
        failing = build_webhook(messages=[text_unit(wa_id="wamid.LOST")], phone_number_id="PHONE_DOWN")
        body["entry"][0]["changes"].insert(0, failing["entry"][0]["changes"][0])

        summary = InboundIngestor(db_session).ingest(body)

        assert summary["skipped_changes"] == 1
        assert [r["wa_message_id"] for r in summary["messages"]] == ["wamid.OK"]
        assert db_session.query(Message).one().wa_message_id == "wamid.OK"
        assert db_session.query(WebhookLog).one().processed is True

    def test_odd_change_shapes_do_not_block_siblings(self, db_session, whatsapp_number):
        """Null collections read as empty and a non-object change is skipped."""
        body = build_webhook(messages=[text_unit(wa_id="wamid.OK")])
        body["entry"][0]["changes"][:0] = [
            {"field": "messages", "value": {"metadata": {"phone_number_id": "PHONE_123"}, "messages": None}},
            {"field": "messages", "value": None},
            "not-a-change",
        ]
        body["entry"].append({"id": "WABA_2", "changes": None})

        summary = InboundIngestor(db_session).ingest(body)

        assert "error" not in summary
        assert summary["skipped_changes"] == 2
        assert [r["status"] for r in summary["messages"]] == ["processed"]
        assert db_session.query(Message).one().wa_message_id == "wamid.OK"

    def test_unit_timestamp_recorded(self, db_session, whatsapp_number):
        """The conversation and message carry the time the sender sent the unit."""
        InboundIngestor(db_session).ingest(build_webhook(messages=[text_unit(timestamp="1704067200")]))

        sent = datetime(2024, 1, 1)
        assert db_session.query(Conversation).one().last_message_at.replace(tzinfo=None) == sent
        assert db_session.query(Message).one().sent_at.replace(tzinfo=None) == sent

    def test_unknown_number_is_skipped(self, db_session, whatsapp_number):
        body = build_webhook(messages=[text_unit()], phone_number_id="NOT_REGISTERED")

        summary = InboundIngestor(db_session).ingest(body)

        assert summary["skipped_changes"] == 1
        assert summary["messages"] == []
        assert db_session.query(Message).count() == 0

    def test_duplicate_delivery_is_skipped(self, db_session, whatsapp_number):
        """A retried webhook does not store the message twice."""
        body = build_webhook(messages=[text_unit(wa_id="wamid.DUP")])
        ingestor = InboundIngestor(db_session)

        ingestor.ingest(body)
        summary = ingestor.ingest(body)

        assert summary["messages"][0] == {
            "status": "skipped",
            "reason": "already_processed",
            "wa_message_id": "wamid.DUP",
        }
        assert db_session.query(Message).count() == 1
        assert db_session.query(Conversation).one().unread_count == 1

    def test_media_reference_stored(self, db_session, whatsapp_number):
        unit = {
            "from": "5511888888888",
            "id": "wamid.IMG",
            "type": "image",
            "image": {"id": "MEDIA_1", "mime_type": "image/jpeg"},
        }

        InboundIngestor(db_session).ingest(build_webhook(messages=[unit]))

        message = db_session.query(Message).one()
        assert message.message_type == "image"
        assert message.content == "[Image]"
        assert message.media_id == "MEDIA_1"
        assert message.media_mime_type == "image/jpeg"

    def test_status_in_same_body(self, db_session, whatsapp_number):
        """Statuses are applied with the owning number's workspace."""
        ingestor = InboundIngestor(db_session)
        ingestor.ingest(build_webhook(messages=[text_unit(wa_id="wamid.IN")]))

        summary = ingestor.ingest(build_webhook(statuses=[{"id": "wamid.IN", "status": "read", "timestamp": "1704067300"}]))

        assert summary["statuses"][0]["status"] == "updated"
        assert db_session.query(Message).one().status == "read"

    def test_webhook_log_marked_processed(self, db_session, whatsapp_number):
        body = build_webhook(messages=[text_unit()])

        InboundIngestor(db_session).ingest(body)

        log = db_session.query(WebhookLog).one()
        assert log.processed is True
        assert log.error_message is None
        assert log.payload == body

    def test_invalid_body_logged_unprocessed(self, db_session):
        summary = InboundIngestor(db_session).ingest({"entry": "not-a-list"})

        assert summary["error"] == "invalid_body"
        log = db_session.query(WebhookLog).one()
        assert log.processed is False
        assert log.error_message == "Unrecognized webhook body"

    def test_replay_is_safe(self, db_session, whatsapp_number):
        """Re-processing a logged body skips units already stored."""
        ingestor = InboundIngestor(db_session)
        ingestor.ingest(build_webhook(messages=[text_unit(wa_id="wamid.R")]))
        log = db_session.query(WebhookLog).one()

        summary = ingestor.process(log.payload, log)

        assert summary["messages"][0]["reason"] == "already_processed"
        assert db_session.query(Message).count() == 1
        assert WhatsAppRepository(db_session).get_webhook_log(log.id).processed is True

    def test_publishes_inbound_event(self, db_session, whatsapp_number, producer, fake_redis):
        InboundIngestor(db_session, producer=producer).ingest(
            build_webhook(messages=[text_unit(wa_id="wamid.EV", sender="+5511888888888", body="Oi")])
        )

        assert fake_redis.events() == ["whatsapp.inbound.received"]
        _, data = fake_redis.entries[0]
        assert data["workspace_id"] == str(whatsapp_number.workspace_id)
        assert data["correlation_id"] == "wamid.EV"
        payload = json.loads(data["payload"])
        assert payload["from_phone"] == "5511888888888"
        assert payload["message_type"] == "text"
        assert payload["content"] == "Oi"

    def test_redis_failure_does_not_fail_ingestion(self, db_session, whatsapp_number):
        import redis

        from crm_whatsapp.streams.producer import WhatsAppStreamProducer

        class BrokenRedis:
            def xadd(self, *args, **kwargs):
                raise redis.ConnectionError("down")

        summary = InboundIngestor(db_session, producer=WhatsAppStreamProducer(BrokenRedis())).ingest(
            build_webhook(messages=[text_unit()])
        )

        assert summary["messages"][0]["status"] == "processed"
        assert db_session.query(Message).count() == 1
