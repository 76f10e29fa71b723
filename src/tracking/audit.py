"""
Authentication event audit log.

Events are kept in Redis sorted sets scored by creation time (a global index,
one per event type and one per user) and trimmed to the retention window on
every write. Events that belong to a user are also published on that user's
channel, which is how a live reader session learns it has been logged out.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any
from uuid import uuid4

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError
import sentry_sdk

from loggers import get_logger
from src.core.utils.datetime_utils import get_utc_now
from src.tracking.enums import AuthEventType, AuthMethod
from src.tracking.interfaces import AuditLogger, AuthEventSubscriber
from src.tracking.redis_keys import (
    events_all_key,
    events_type_key,
    events_user_key,
    user_channel,
)
from src.tracking.schemas import AuthEvent

logger = get_logger(__name__)

DEFAULT_RETENTION_DAYS = 30


class RedisAuditLogger(AuditLogger):
    def __init__(
        self, redis_client: Redis, retention_days: int = DEFAULT_RETENTION_DAYS
    ) -> None:
        self.redis_client = redis_client
        self.retention = timedelta(days=retention_days)

    async def log_auth_event(
        self,
        *,
        user_id: str | None,
        event_type: AuthEventType,
        auth_method: AuthMethod | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuthEvent | None:
        """
        Record an event. Storage failures are reported and swallowed: an audit
        outage must never break the operation that produced the event.
        """
        now = get_utc_now()
        event = AuthEvent(
            id=str(uuid4()),
            user_id=user_id,
            event_type=event_type,
            auth_method=auth_method,
            metadata=metadata,
            created_at=now,
        )
        serialized = event.model_dump_json()
        score = now.timestamp()
        cutoff = (now - self.retention).timestamp()

        index_keys = [events_all_key(), events_type_key(event_type)]
        if user_id:
            index_keys.append(events_user_key(user_id))

        try:
            pipe = self.redis_client.pipeline(transaction=True)
            for key in index_keys:
                pipe.zadd(key, {serialized: score})
                pipe.zremrangebyscore(key, "-inf", f"({cutoff}")
            if user_id:
                pipe.publish(user_channel(user_id), serialized)
            await pipe.execute()
        except RedisError as exc:
            logger.error(
                "Failed to log auth event %s for user %s",
                event_type,
                user_id,
                exc_info=exc,
                extra={"event": "audit_write_failed", "event_type": str(event_type)},
            )
            sentry_sdk.capture_exception(exc)
            return None

        return event

    async def list_user_events(self, user_id: str, limit: int = 50) -> list[AuthEvent]:
        """Most recent events on a user's own stream, newest first."""
        raw_events = await self.redis_client.zrevrange(
            events_user_key(user_id), 0, limit - 1
        )
        events: list[AuthEvent] = []
        for raw in raw_events:
            try:
                events.append(AuthEvent.model_validate_json(raw))
            except ValidationError:
                logger.warning("Skipping unreadable auth event for user %s", user_id)
        return events


class RedisAuthEventSubscriber(AuthEventSubscriber):
    def __init__(self, redis_client: Redis) -> None:
        self.redis_client = redis_client

    @asynccontextmanager
    async def subscribe(
        self, user_id: str
    ) -> AsyncGenerator[AsyncIterator[AuthEvent]]:
        """
        Subscribe to the user's channel. The subscription is live once the
        context is entered, so nothing published afterwards is missed.
        """
        channel = user_channel(user_id)
        pubsub = self.redis_client.pubsub()
        await pubsub.subscribe(channel)
        try:
            yield self._events(pubsub, channel)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()

    @staticmethod
    async def _events(pubsub: PubSub, channel: str) -> AsyncIterator[AuthEvent]:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                yield AuthEvent.model_validate_json(message["data"])
            except ValidationError:
                logger.warning("Dropping malformed event on channel %s", channel)
