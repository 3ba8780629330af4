"""
Tests for event publishing to Redis Streams.
"""

import json
from uuid import UUID

import redis

from crm_whatsapp.contracts.envelope import WhatsAppEnvelope
from crm_whatsapp.streams.producer import WhatsAppStreamProducer


class TestWhatsAppStreamProducer:
    """Tests for WhatsAppStreamProducer."""

    def test_publish_inbound(self, producer, fake_redis, sample_workspace_id):
        msg_id = producer.publish_inbound(sample_workspace_id, {"content": "Oi"}, correlation_id="wamid.A")

        assert msg_id == "1-0"
        stream, data = fake_redis.entries[0]
        assert stream == "events:whatsapp"
        assert data["event_type"] == "whatsapp.inbound.received"
        assert data["workspace_id"] == str(sample_workspace_id)
        assert json.loads(data["payload"]) == {"content": "Oi"}

    def test_custom_stream(self, fake_redis, sample_workspace_id):
        WhatsAppStreamProducer(fake_redis, stream="events:test").publish_outbound(sample_workspace_id, {})
        assert fake_redis.entries[0][0] == "events:test"

    def test_redis_error_is_swallowed(self, sample_workspace_id):
        class BrokenRedis:
            def xadd(self, *args, **kwargs):
                raise redis.ConnectionError("down")

        assert WhatsAppStreamProducer(BrokenRedis()).publish_status(sample_workspace_id, {}) is None

    def test_envelope_round_trip_from_stream(self, producer, fake_redis, sample_workspace_id):
        producer.publish_status(sample_workspace_id, {"status": "read"}, correlation_id="wamid.S")

        envelope = WhatsAppEnvelope.from_stream_message("1-0", fake_redis.entries[0][1])

        assert envelope.event_type == "whatsapp.message.status_updated"
        assert envelope.workspace_id == UUID(str(sample_workspace_id))
        assert envelope.payload == {"status": "read"}
        assert envelope.correlation_id == "wamid.S"
        assert envelope.metadata["stream_msg_id"] == "1-0"
