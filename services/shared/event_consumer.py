"""Redis Streams consumer (consumer groups) used to react to agenda events."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Coroutine, Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


EventHandler = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


def decode_event(data: dict[bytes, bytes]) -> tuple[str, dict[str, Any]]:
    """Decode a raw stream entry into ``(event_type, payload)``.

    The business id travels in the envelope metadata; it is merged into the
    payload (payload keys win) so handlers only look at one dict.
    """
    event_type = data.get(b"event_type", b"").decode("utf-8")
    payload = json.loads(data.get(b"payload", b"{}").decode("utf-8") or "{}")
    raw_metadata = data.get(b"metadata")
    if raw_metadata:
        metadata = json.loads(raw_metadata.decode("utf-8"))
        for key, value in metadata.items():
            payload.setdefault(key, value)
    return event_type, payload


class EventConsumer:
    """
    Consume events from a Redis Stream using a consumer group.

    Example:
        consumer = EventConsumer(
            redis_url="redis://localhost:6379",
            stream_name="agenda-events",
            group_name="agenda-availability",
            consumer_name="agenda-worker-1",
        )
        consumer.register_handler("appointment.created", handle_appointment_changed)
        await consumer.start()
    """

    def __init__(
        self,
        redis_url: str,
        stream_name: str,
        group_name: str,
        consumer_name: str,
        *,
        block_ms: int = 5000,
        count: int = 10,
    ) -> None:
        self._redis_url = redis_url
        self._stream_name = stream_name
        self._group_name = group_name
        self._consumer_name = consumer_name
        self._block_ms = block_ms
        self._count = count
        self._handlers: dict[str, EventHandler] = {}
        self._client: Optional[aioredis.Redis] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for a specific event type."""
        self._handlers[event_type] = handler
        logger.info("Registered handler for event type: %s", event_type)

    async def _ensure_consumer_group(self) -> None:
        try:
            await self._client.xgroup_create(
                name=self._stream_name,
                groupname=self._group_name,
                id="0",
                mkstream=True,
            )
            logger.info("Created consumer group '%s' for stream '%s'", self._group_name, self._stream_name)
        except aioredis.ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise

    async def dispatch(self, event_type: str, payload: dict[str, Any]) -> bool:
        """Run the handler registered for ``event_type``. Returns False when none is registered."""
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.debug("No handler for event type: %s", event_type)
            return False
        await handler(event_type, payload)
        return True

    async def _process_message(self, message_id: bytes, data: dict[bytes, bytes]) -> None:
        try:
            event_type, payload = decode_event(data)
            await self.dispatch(event_type, payload)
            await self._client.xack(self._stream_name, self._group_name, message_id)
        except Exception:
            # sem ack: a mensagem continua pendente e é reprocessada no próximo start
            logger.error("Error processing message %s", message_id, exc_info=True)

    async def _read_pending_messages(self) -> None:
        pending = await self._client.xpending_range(
            name=self._stream_name,
            groupname=self._group_name,
            min="-",
            max="+",
            count=self._count,
            consumername=self._consumer_name,
        )
        if not pending:
            return

        logger.info("Found %d pending messages to process", len(pending))
        for entry in pending:
            message_id = entry["message_id"]
            messages = await self._client.xrange(self._stream_name, min=message_id, max=message_id)
            if messages:
                _, data = messages[0]
                await self._process_message(message_id, data)

    async def start(self) -> None:
        """Start consuming events (blocking call)."""
        if self._running:
            logger.warning("Consumer already running")
            return

        self._running = True
        self._client = aioredis.Redis.from_url(self._redis_url)

        try:
            await self._ensure_consumer_group()
            logger.info("Consumer '%s' started on stream '%s'", self._consumer_name, self._stream_name)

            await self._read_pending_messages()

            while self._running:
                try:
                    messages = await self._client.xreadgroup(
                        groupname=self._group_name,
                        consumername=self._consumer_name,
                        streams={self._stream_name: ">"},
                        count=self._count,
                        block=self._block_ms,
                    )
                    for _, stream_messages in messages or []:
                        for message_id, data in stream_messages:
                            await self._process_message(message_id, data)
                except asyncio.CancelledError:
                    logger.info("Consumer task cancelled")
                    break
                except aioredis.RedisError:
                    logger.error("Error in consumer loop", exc_info=True)
                    await asyncio.sleep(1)
        finally:
            self._running = False
            if self._client:
                await self._client.aclose()
            logger.info("Consumer '%s' stopped", self._consumer_name)

    async def stop(self) -> None:
        self._running = False
        logger.info("Stopping consumer...")


async def cleanup_consumer(
    consumer: Optional[EventConsumer],
    task: Optional[asyncio.Task],
    log: logging.Logger,
    *,
    timeout: float = 5.0,
) -> None:
    """Stop a consumer started in a lifespan and wait for its task to finish.

    The task gets ``timeout`` seconds to leave its read loop; after that it is cancelled.
    """
    if consumer is not None:
        try:
            await consumer.stop()
        except Exception:
            log.warning("Error stopping event consumer", exc_info=True)

    if task is None or task.done():
        return

    try:
        await asyncio.wait_for(task, timeout=timeout)
    except asyncio.TimeoutError:
        log.warning("Event consumer did not stop in %.1fs, cancelled", timeout)
    except asyncio.CancelledError:
        pass
    log.info("Event consumer stopped")
