"""Tests for the Redis Streams event publisher."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
import redis

from shared.event_consumer import decode_event
from shared.messaging import EventPublisher, build_envelope


class TestBuildEnvelope:
    def test_business_id_and_timestamp_go_to_metadata(self):
        business_id = uuid4()
        occurred_at = datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)

        fields = build_envelope(
            "appointment.created",
            {"appointment_id": "a1", "date": "2025-01-10"},
            business_id=business_id,
            occurred_at=occurred_at,
        )

        assert fields["event_type"] == "appointment.created"
        assert json.loads(fields["payload"]) == {"appointment_id": "a1", "date": "2025-01-10"}
        assert json.loads(fields["metadata"]) == {
            "occurred_at": "2025-01-06T15:00:00+00:00",
            "business_id": str(business_id),
        }

    def test_envelope_decodes_back_for_consumers(self):
        fields = build_envelope("clients.deduplicated", {"duplicatesRemoved": 2}, business_id="b1")
        raw = {key.encode(): value.encode() for key, value in fields.items()}

        event_type, payload = decode_event(raw)

        assert event_type == "clients.deduplicated"
        assert payload["duplicatesRemoved"] == 2
        assert payload["business_id"] == "b1"
        assert "occurred_at" in payload


class TestEventPublisher:
    @pytest.fixture
    def mock_redis(self):
        client = MagicMock()
        with patch("shared.messaging.redis.Redis.from_url", return_value=client):
            yield client

    def test_publish_appends_to_stream_and_returns_entry_id(self, mock_redis):
        mock_redis.xadd.return_value = b"1736175600000-0"
        publisher = EventPublisher("redis://localhost:6379", "agenda-events", maxlen=500)

        entry_id = publisher.publish("appointment.cancelled", {"date": "2025-01-10"}, business_id="b1")

        assert entry_id == "1736175600000-0"
        stream, fields = mock_redis.xadd.call_args.args
        assert stream == "agenda-events"
        assert fields["event_type"] == "appointment.cancelled"
        assert json.loads(fields["metadata"])["business_id"] == "b1"
        assert mock_redis.xadd.call_args.kwargs == {"maxlen": 500, "approximate": True}

    def test_unbounded_stream_is_not_trimmed(self, mock_redis):
        publisher = EventPublisher("redis://localhost:6379", "agenda-events", maxlen=None)

        publisher.publish("appointment.created", {})

        assert mock_redis.xadd.call_args.kwargs == {"maxlen": None, "approximate": False}

    def test_redis_failure_is_logged_not_raised(self, mock_redis, caplog):
        mock_redis.xadd.side_effect = redis.ConnectionError("down")
        publisher = EventPublisher("redis://localhost:6379", "agenda-events")

        entry_id = publisher.publish("appointment.created", {"date": "2025-01-10"}, business_id="b1")

        assert entry_id is None
        assert "appointment.created" in caplog.text
