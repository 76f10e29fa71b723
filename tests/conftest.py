from collections.abc import AsyncGenerator, Generator
import os

os.environ.setdefault("TESTING", "true")
os.environ.setdefault(
    "TRACKING_TOKEN_SECRET_KEY", "test-tracking-secret-key-with-enough-entropy"
)
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

from fastapi import FastAPI  # noqa: E402
import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from src.core.redis.dependencies import get_redis_client  # noqa: E402
from src.main.config import Config, get_settings  # noqa: E402
from src.main.web import get_application  # noqa: E402
from src.tracking.codec import TokenCodec, TokenSigningKey  # noqa: E402
from src.tracking.dependencies import get_token_codec  # noqa: E402
from src.tracking.services import TrackingTokenService  # noqa: E402
from src.tracking.stores import RedisRevocationStore  # noqa: E402
from tests.fakes.redis import InMemoryRedis  # noqa: E402
from tests.helpers.overrides import DependencyOverrides  # noqa: E402

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key", "X-Admin-User-Id": "admin-123"}


@pytest.fixture(scope="session")
def settings() -> Config:
    get_settings.cache_clear()
    return get_settings()


@pytest.fixture
def app() -> FastAPI:
    return get_application()


@pytest.fixture
def dependency_overrides(app: FastAPI) -> Generator[DependencyOverrides]:
    overrides = DependencyOverrides(app)
    yield overrides
    overrides.reset()


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def signing_key() -> TokenSigningKey:
    return TokenSigningKey(secret="unit-test-signing-secret-0123456789")


@pytest.fixture
def codec(signing_key: TokenSigningKey) -> TokenCodec:
    return TokenCodec(signing_key)


@pytest.fixture
def revocation_store(fake_redis: InMemoryRedis) -> RedisRevocationStore:
    return RedisRevocationStore(redis_client=fake_redis)  # type: ignore[arg-type]


@pytest.fixture
def token_service(
    codec: TokenCodec, revocation_store: RedisRevocationStore
) -> TrackingTokenService:
    return TrackingTokenService(codec=codec, store=revocation_store)


@pytest.fixture
def app_with_fakes(
    app: FastAPI,
    dependency_overrides: DependencyOverrides,
    fake_redis: InMemoryRedis,
    codec: TokenCodec,
    settings: Config,
) -> FastAPI:
    dependency_overrides.provide(get_redis_client, fake_redis)
    dependency_overrides.provide(get_token_codec, codec)
    dependency_overrides.provide(get_settings, settings)
    return app


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        yield client


@pytest_asyncio.fixture
async def async_client_with_fakes(
    app_with_fakes: FastAPI,
) -> AsyncGenerator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app_with_fakes)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        yield client
