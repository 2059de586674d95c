"""Redis Streams publisher for agenda events (appointments, client merges)."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import redis

logger = logging.getLogger(__name__)


def build_envelope(
    event_type: str,
    payload: Dict[str, Any],
    *,
    business_id: Optional[UUID | str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    occurred_at: Optional[datetime] = None,
) -> Dict[str, str]:
    """Flatten an event into the string fields stored in the stream entry.

    ``metadata`` always carries ``occurred_at`` (UTC, ISO 8601) and, when
    given, the ``business_id`` the consumers use to scope cache invalidation.
    """
    envelope_metadata: Dict[str, Any] = dict(metadata or {})
    envelope_metadata["occurred_at"] = (occurred_at or datetime.now(timezone.utc)).isoformat()
    if business_id is not None:
        envelope_metadata["business_id"] = str(business_id)

    return {
        "event_type": event_type,
        "payload": json.dumps(payload, default=str),
        "metadata": json.dumps(envelope_metadata, default=str),
    }


class EventPublisher:
    """Publish agenda events (``appointment.created`` etc.) to a Redis Stream.

    Publishing is best effort: a failure is logged and never rolls back the
    write that produced the event.
    """

    def __init__(self, redis_url: str, stream_name: str, *, maxlen: Optional[int] = 1000) -> None:
        self._stream_name = stream_name
        self._maxlen = maxlen
        self._client = redis.Redis.from_url(redis_url)

    def publish(
        self,
        event_type: str,
        payload: Dict[str, Any],
        *,
        business_id: Optional[UUID | str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """Append an event to the stream and return its entry id.

        Returns ``None`` when Redis refused the write.
        """
        fields = build_envelope(event_type, payload, business_id=business_id, metadata=metadata)
        try:
            entry_id = self._client.xadd(
                self._stream_name,
                fields,
                maxlen=self._maxlen,
                approximate=bool(self._maxlen),
            )
        except redis.RedisError:
            logger.exception(
                "Failed to publish '%s' (business_id=%s) to stream '%s'",
                event_type,
                business_id,
                self._stream_name,
            )
            return None

        if isinstance(entry_id, bytes):
            entry_id = entry_id.decode("utf-8")
        logger.debug("Published '%s' as %s", event_type, entry_id)
        return entry_id
