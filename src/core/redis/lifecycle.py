from fastapi import FastAPI
from redis.exceptions import RedisError

from loggers import get_logger
from src.core.redis.core import create_redis_client
from src.main.config import RedisConfig

logger = get_logger("redis")


async def on_redis_startup(app: FastAPI, redis_config: RedisConfig) -> None:
    """
    Create the Redis client, make sure it answers, and attach it to app.state.

    Startup fails when Redis is unreachable: without the revocation store no
    token can be verified.
    """
    redis_client = create_redis_client(redis_config)
    try:
        await redis_client.ping()
    except RedisError:
        logger.error(
            "Redis is unreachable at %s:%s",
            redis_config.REDIS_HOST,
            redis_config.REDIS_PORT,
        )
        await redis_client.aclose()
        raise
    app.state.redis_client = redis_client
    logger.info("Redis client created successfully.")


async def on_redis_shutdown(app: FastAPI) -> None:
    redis_client = getattr(app.state, "redis_client", None)
    if redis_client:
        logger.info("Closing Redis client...")
        await redis_client.aclose()
        app.state.redis_client = None
        logger.info("Redis client closed.")
