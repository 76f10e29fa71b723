from typing import cast

from redis.asyncio import Redis
from starlette.requests import HTTPConnection


async def get_redis_client(connection: HTTPConnection) -> Redis:
    """
    Provide the Redis client stored on app.state (HTTP and WebSocket routes).
    """
    redis_client = getattr(connection.app.state, "redis_client", None)
    if redis_client is None:
        raise RuntimeError(
            "Redis client is not initialized. Ensure startup lifecycle ran."
        )
    return cast(Redis, redis_client)
