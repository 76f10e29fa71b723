from collections.abc import Awaitable, Sequence
from datetime import datetime
import json
from typing import Any, cast

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from loggers import get_logger
from src.core.utils.datetime_utils import get_utc_now, to_epoch_seconds
from src.tracking.enums import AuthEventType, RevocationReason
from src.tracking.exceptions import StoreError
from src.tracking.hasher import short_hash
from src.tracking.interfaces import RevocationStore
from src.tracking.redis_keys import (
    events_type_key,
    revoked_key,
    session_key,
    user_sessions_key,
)
from src.tracking.redis_scripts import REVOKE_USER_SESSIONS_SCRIPT
from src.tracking.schemas import FailureEvent, RevocationRecord, SessionRecord

logger = get_logger(__name__)


class RedisRevocationStore(RevocationStore):
    """
    Revocation records, session index and failure-event lookups kept in Redis.

    Layout:
        tracking:revoked:{hash}     hash  reason, revoked_at (never expires)
        tracking:session:{hash}     hash  session fields, expires with the token
        tracking:sessions:{user}    zset  token hash -> expiry timestamp
    """

    def __init__(self, redis_client: Redis) -> None:
        self.redis_client = redis_client

    async def is_revoked(self, token_hash: str) -> bool:
        try:
            return bool(await self.redis_client.exists(revoked_key(token_hash)))
        except RedisError as exc:
            raise StoreError(
                "Revocation lookup failed",
                additional_info={"token_hash": short_hash(token_hash)},
            ) from exc

    async def get_revocation(self, token_hash: str) -> RevocationRecord | None:
        try:
            data = await self.redis_client.hgetall(revoked_key(token_hash))
        except RedisError as exc:
            raise StoreError("Revocation lookup failed") from exc
        if not data:
            return None
        return RevocationRecord(
            token_hash=token_hash,
            reason=RevocationReason(data["reason"]),
            revoked_at=datetime.fromisoformat(data["revoked_at"]),
        )

    async def revoke(self, token_hash: str, reason: RevocationReason) -> None:
        try:
            await self.redis_client.hset(
                revoked_key(token_hash),
                mapping=self._revocation_mapping(reason),
            )
        except RedisError as exc:
            raise StoreError(
                "Failed to write revocation record",
                additional_info={"token_hash": short_hash(token_hash)},
            ) from exc

    async def revoke_all_for_user(self, user_id: str) -> bool:
        """
        Revoke every indexed session of the user in one server-side step.
        Sessions registered afterwards land in a fresh index.
        """
        mapping = self._revocation_mapping(RevocationReason.ADMIN_ACTION)
        try:
            revoked_count: int = await cast(
                Awaitable[int],
                self.redis_client.eval(
                    REVOKE_USER_SESSIONS_SCRIPT,
                    1,
                    user_sessions_key(user_id),
                    revoked_key(""),
                    mapping["reason"],
                    mapping["revoked_at"],
                ),
            )
        except RedisError as exc:
            raise StoreError(
                "Failed to revoke user sessions",
                additional_info={"user_id": user_id},
            ) from exc

        logger.info(
            "Revoked %s session(s) for user %s",
            revoked_count,
            user_id,
            extra={"event": "sessions_revoked", "user_id": user_id},
        )
        return True

    async def register_session(self, record: SessionRecord) -> None:
        expires_ts = to_epoch_seconds(record.expires_at)
        try:
            pipe = self.redis_client.pipeline(transaction=True)
            pipe.hset(
                session_key(record.token_hash),
                mapping={
                    "session_id": record.session_id,
                    "user_id": record.user_id,
                    "newsletter_id": record.newsletter_id,
                    "created_at": record.created_at.isoformat(),
                    "expires_at": record.expires_at.isoformat(),
                },
            )
            pipe.expireat(session_key(record.token_hash), expires_ts)
            pipe.zadd(
                user_sessions_key(record.user_id), {record.token_hash: expires_ts}
            )
            await pipe.execute()
        except RedisError as exc:
            raise StoreError(
                "Failed to register session",
                additional_info={"user_id": record.user_id},
            ) from exc

    async def list_sessions(self, user_id: str) -> Sequence[SessionRecord]:
        now_ts = to_epoch_seconds(get_utc_now())
        try:
            token_hashes: list[str] = await self.redis_client.zrangebyscore(
                user_sessions_key(user_id), now_ts, "+inf"
            )
            if not token_hashes:
                return []
            pipe = self.redis_client.pipeline(transaction=False)
            for token_hash in token_hashes:
                pipe.hgetall(session_key(token_hash))
                pipe.exists(revoked_key(token_hash))
            replies = await pipe.execute()
        except RedisError as exc:
            raise StoreError(
                "Failed to list sessions", additional_info={"user_id": user_id}
            ) from exc

        sessions: list[SessionRecord] = []
        for index, token_hash in enumerate(token_hashes):
            data, revoked = replies[2 * index], replies[2 * index + 1]
            if not data or revoked:
                continue
            sessions.append(
                SessionRecord(
                    session_id=data["session_id"],
                    user_id=data["user_id"],
                    token_hash=token_hash,
                    newsletter_id=data["newsletter_id"],
                    created_at=datetime.fromisoformat(data["created_at"]),
                    expires_at=datetime.fromisoformat(data["expires_at"]),
                )
            )
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    async def query_failure_events(self, since: datetime) -> Sequence[FailureEvent]:
        try:
            raw_events: list[str] = await self.redis_client.zrangebyscore(
                events_type_key(AuthEventType.LOGIN_FAILURE),
                since.timestamp(),
                "+inf",
            )
        except RedisError as exc:
            raise StoreError("Failed to query failure events") from exc

        events: list[FailureEvent] = []
        for raw in raw_events:
            try:
                data: dict[str, Any] = json.loads(raw)
                events.append(
                    FailureEvent(
                        user_id=data.get("user_id"),
                        created_at=data["created_at"],
                    )
                )
            except (ValueError, KeyError, ValidationError):
                logger.warning("Skipping unreadable auth event entry")
        return events

    @staticmethod
    def _revocation_mapping(reason: RevocationReason) -> dict[str, str]:
        return {
            "reason": reason.value,
            "revoked_at": get_utc_now().isoformat(),
        }
