from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from loggers import get_logger
from src.core.redis.lifecycle import on_redis_shutdown, on_redis_startup
from src.main.config import get_settings
from src.main.sentry import init_sentry
from src.tracking.codec import TokenCodec, TokenSigningKey

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    settings = get_settings()
    init_sentry(settings)

    # The signing key is read once here; request handlers only see the codec
    app.state.token_codec = TokenCodec(TokenSigningKey.from_config(settings.tracking))
    logger.info(
        "Tracking token codec ready (algorithm=%s)", app.state.token_codec.algorithm
    )

    await on_redis_startup(app, settings.redis)

    yield

    await on_redis_shutdown(app)
