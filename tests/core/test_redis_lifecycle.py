from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.core.redis import lifecycle
from src.core.redis.dependencies import get_redis_client
from src.main.config import RedisConfig

REDIS_CONFIG = RedisConfig(REDIS_HOST="redis.example", REDIS_PORT=6380)


@pytest.mark.asyncio
async def test_on_redis_startup_and_shutdown(monkeypatch: pytest.MonkeyPatch) -> None:
    client = SimpleNamespace(
        ping=AsyncMock(return_value=True),
        aclose=AsyncMock(return_value=None),
    )
    received: list[RedisConfig] = []

    def fake_create(redis_config: RedisConfig) -> SimpleNamespace:
        received.append(redis_config)
        return client

    monkeypatch.setattr(lifecycle, "create_redis_client", fake_create)

    app = SimpleNamespace(state=SimpleNamespace())

    await lifecycle.on_redis_startup(app, REDIS_CONFIG)  # type: ignore[arg-type]

    assert received == [REDIS_CONFIG]
    assert getattr(app.state, "redis_client") is client
    client.ping.assert_awaited_once()

    await lifecycle.on_redis_shutdown(app)  # type: ignore[arg-type]
    client.aclose.assert_awaited_once()
    assert app.state.redis_client is None


@pytest.mark.asyncio
async def test_on_redis_startup_fails_when_unreachable(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client = SimpleNamespace(
        ping=AsyncMock(side_effect=RedisConnectionError("refused")),
        aclose=AsyncMock(return_value=None),
    )
    monkeypatch.setattr(lifecycle, "create_redis_client", lambda _: client)
    monkeypatch.setattr(lifecycle, "logger", MagicMock())
    app = SimpleNamespace(state=SimpleNamespace())

    with pytest.raises(RedisConnectionError):
        await lifecycle.on_redis_startup(app, REDIS_CONFIG)  # type: ignore[arg-type]

    client.aclose.assert_awaited_once()
    assert not hasattr(app.state, "redis_client")


@pytest.mark.asyncio
async def test_on_redis_shutdown_without_client_is_noop() -> None:
    app = SimpleNamespace(state=SimpleNamespace())

    await lifecycle.on_redis_shutdown(app)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_get_redis_client_returns_from_state() -> None:
    redis_client = object()
    request = SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(redis_client=redis_client))
    )

    resolved = await get_redis_client(request)  # type: ignore[arg-type]

    assert resolved is redis_client


@pytest.mark.asyncio
async def test_get_redis_client_missing_raises() -> None:
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))

    with pytest.raises(RuntimeError):
        await get_redis_client(request)  # type: ignore[arg-type]
