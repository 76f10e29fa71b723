from typing import cast

from redis.asyncio import Redis

from loggers import get_logger
from src.main.config import RedisConfig

logger = get_logger(__name__)


def create_redis_client(redis_config: RedisConfig) -> Redis:
    """
    Build the async client used by the revocation store and the audit log.

    Responses are decoded to ``str``. The socket timeout bounds every store
    round trip, so an unreachable Redis surfaces as a ``RedisError`` instead
    of a hung request.
    """
    try:
        client = Redis.from_url(
            redis_config.dsn,
            decode_responses=True,
            socket_timeout=redis_config.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=redis_config.REDIS_SOCKET_TIMEOUT,
            health_check_interval=redis_config.REDIS_HEALTH_CHECK_INTERVAL,
        )
        return cast(Redis, client)
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to create Redis client: %s", exc)
        raise
