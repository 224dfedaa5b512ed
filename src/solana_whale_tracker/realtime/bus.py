"""Best-effort fan-out of live events.

Events go to in-process subscriber queues and, when a Redis client is
configured, to a Redis pub/sub channel so other processes (for example a
websocket gateway) can relay them. Broadcasting never raises into the
caller: a full queue drops the event and a Redis failure is logged.
"""

import asyncio
import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

NEW_WHALE_DISCOVERED = "new_whale_discovered"
WHALE_DISCOVERY_COMPLETE = "whale_discovery_complete"
NEW_TRANSACTION = "new_transaction"
ALERT_TRIGGERED = "alert_triggered"
WHALE_METRICS_UPDATE = "whale_metrics_update"

DEFAULT_CHANNEL = "whale-tracker:events"
DEFAULT_QUEUE_MAXSIZE = 1000
DEFAULT_PUBLISH_TIMEOUT_SECONDS = 1.0


def _json_default(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class BroadcastBus:
    """Publishes ``{type, data, timestamp}`` envelopes to live subscribers."""

    def __init__(
        self,
        redis: Redis | None = None,
        *,
        channel: str = DEFAULT_CHANNEL,
        queue_maxsize: int = DEFAULT_QUEUE_MAXSIZE,
        publish_timeout_seconds: float = DEFAULT_PUBLISH_TIMEOUT_SECONDS,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._queue_maxsize = queue_maxsize
        self._publish_timeout = publish_timeout_seconds
        self._subscribers: set[asyncio.Queue[dict[str, Any]]] = set()
        self.dropped_events = 0

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        """Register an in-process subscriber and return its queue."""
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def broadcast(self, event_type: str, payload: dict[str, Any]) -> None:
        """Deliver an event to every subscriber. Never raises."""
        envelope = {
            "type": event_type,
            "data": payload,
            "timestamp": datetime.now(UTC).isoformat(),
        }

        for queue in list(self._subscribers):
            try:
                queue.put_nowait(envelope)
            except asyncio.QueueFull:
                self.dropped_events += 1
                logger.debug("Subscriber queue full; dropped %s event", event_type)

        if self._redis is None:
            return
        try:
            message = json.dumps(envelope, default=_json_default)
            await asyncio.wait_for(
                self._redis.publish(self._channel, message),
                timeout=self._publish_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.dropped_events += 1
            logger.warning("Failed to publish %s event: %s", event_type, e)
