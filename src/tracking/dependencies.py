from datetime import timedelta
import secrets
from typing import cast

from fastapi import Depends, Header, Security
from fastapi.security.api_key import APIKeyHeader
from redis.asyncio import Redis
from starlette.requests import HTTPConnection

from src.core.errors.exceptions import UnauthorizedException
from src.core.redis.dependencies import get_redis_client
from src.main.config import Config, get_settings
from src.tracking.admin.services import AdminSessionService
from src.tracking.audit import RedisAuditLogger, RedisAuthEventSubscriber
from src.tracking.codec import TokenCodec
from src.tracking.services import TrackingTokenService
from src.tracking.stores import RedisRevocationStore

admin_key_header = APIKeyHeader(
    name="X-Admin-Key", scheme_name="admin-key", auto_error=False
)


async def get_token_codec(connection: HTTPConnection) -> TokenCodec:
    """
    Provide the codec built at startup. It holds the signing key, so it is
    never constructed per request.
    """
    codec = getattr(connection.app.state, "token_codec", None)
    if codec is None:
        raise RuntimeError(
            "Token codec is not initialized. Ensure startup lifecycle ran."
        )
    return cast(TokenCodec, codec)


async def get_revocation_store(
    redis_client: Redis = Depends(get_redis_client),
) -> RedisRevocationStore:
    return RedisRevocationStore(redis_client=redis_client)


async def get_audit_logger(
    redis_client: Redis = Depends(get_redis_client),
    settings: Config = Depends(get_settings),
) -> RedisAuditLogger:
    return RedisAuditLogger(
        redis_client=redis_client,
        retention_days=settings.security.AUTH_EVENTS_RETENTION_DAYS,
    )


async def get_event_subscriber(
    redis_client: Redis = Depends(get_redis_client),
) -> RedisAuthEventSubscriber:
    return RedisAuthEventSubscriber(redis_client=redis_client)


async def get_tracking_token_service(
    codec: TokenCodec = Depends(get_token_codec),
    store: RedisRevocationStore = Depends(get_revocation_store),
    settings: Config = Depends(get_settings),
) -> TrackingTokenService:
    return TrackingTokenService(
        codec=codec,
        store=store,
        token_ttl=timedelta(minutes=settings.tracking.TRACKING_TOKEN_EXPIRE_MINUTES),
    )


async def get_admin_session_service(
    store: RedisRevocationStore = Depends(get_revocation_store),
    audit_logger: RedisAuditLogger = Depends(get_audit_logger),
    settings: Config = Depends(get_settings),
) -> AdminSessionService:
    return AdminSessionService(
        store=store,
        audit_logger=audit_logger,
        failure_threshold=settings.security.SUSPICIOUS_FAILURE_THRESHOLD,
        lookback=timedelta(minutes=settings.security.SUSPICIOUS_LOOKBACK_MINUTES),
    )


async def require_admin(
    admin_key: str | None = Security(admin_key_header),
    admin_user_id: str | None = Header(default=None, alias="X-Admin-User-Id"),
    settings: Config = Depends(get_settings),
) -> str:
    """
    Authenticate an administrative caller and return the acting admin's id.

    Raises:
        UnauthorizedException: If the key is missing or wrong, or no acting
            admin id was supplied.
    """
    expected = settings.admin.ADMIN_API_KEY.get_secret_value()
    if not admin_key or not secrets.compare_digest(
        admin_key.encode("utf-8"), expected.encode("utf-8")
    ):
        raise UnauthorizedException("Invalid admin credentials")

    admin_user_id = (admin_user_id or "").strip()
    if not admin_user_id:
        raise UnauthorizedException("Acting admin id is required")
    return admin_user_id
