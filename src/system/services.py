from collections.abc import Awaitable

from redis.asyncio import Redis
import sentry_sdk

from loggers import get_logger
from src.core.errors.exceptions import InfrastructureException
from src.system.schemas import HealthCheckResponse


class HealthService:
    def __init__(self, redis_client: Redis, version: str) -> None:
        self.redis_client = redis_client
        self.version = version
        self.logger = get_logger(__name__)

    async def get_status(self) -> HealthCheckResponse:
        redis_is_ok = await self._check_redis()
        if not redis_is_ok:
            raise InfrastructureException(
                "System health check failed",
                additional_info={"redis": redis_is_ok},
            )
        return HealthCheckResponse(status="ok", version=self.version, redis="ok")

    async def _check_redis(self) -> bool:
        try:
            ping_result = self.redis_client.ping()
            if isinstance(ping_result, Awaitable):
                return bool(await ping_result)
            return bool(ping_result)
        except Exception as exc:
            self.logger.error("Redis health check failed", exc_info=exc)
            sentry_sdk.capture_exception(exc)
            return False
