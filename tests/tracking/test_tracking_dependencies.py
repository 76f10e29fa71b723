from types import SimpleNamespace

from pydantic import SecretStr
import pytest

from src.core.errors.exceptions import UnauthorizedException
from src.main.config import AdminConfig, Config
from src.tracking.codec import TokenCodec
from src.tracking.dependencies import (
    get_admin_session_service,
    get_token_codec,
    get_tracking_token_service,
    require_admin,
)


@pytest.fixture
def admin_settings(settings: Config) -> Config:
    return settings.model_copy(
        update={"admin": AdminConfig(ADMIN_API_KEY=SecretStr("k3y"))}
    )


@pytest.mark.asyncio
async def test_require_admin_returns_acting_admin(admin_settings: Config) -> None:
    admin_id = await require_admin(
        admin_key="k3y", admin_user_id="  admin-1 ", settings=admin_settings
    )

    assert admin_id == "admin-1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "admin_key,admin_user_id,message",
    [
        (None, "admin-1", "Invalid admin credentials"),
        ("", "admin-1", "Invalid admin credentials"),
        ("k3y-but-longer", "admin-1", "Invalid admin credentials"),
        ("k3y", None, "Acting admin id is required"),
        ("k3y", " ", "Acting admin id is required"),
    ],
)
async def test_require_admin_rejects(
    admin_settings: Config,
    admin_key: str | None,
    admin_user_id: str | None,
    message: str,
) -> None:
    with pytest.raises(UnauthorizedException) as exc_info:
        await require_admin(
            admin_key=admin_key, admin_user_id=admin_user_id, settings=admin_settings
        )

    assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_get_token_codec_returns_from_state(codec: TokenCodec) -> None:
    connection = SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(token_codec=codec))
    )

    assert await get_token_codec(connection) is codec  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_get_token_codec_missing_raises() -> None:
    connection = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))

    with pytest.raises(RuntimeError):
        await get_token_codec(connection)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_services_take_windows_from_settings(
    settings: Config, codec: TokenCodec, revocation_store
) -> None:
    tuned = settings.model_copy(
        update={
            "tracking": settings.tracking.model_copy(
                update={"TRACKING_TOKEN_EXPIRE_MINUTES": 5}
            ),
            "security": settings.security.model_copy(
                update={
                    "SUSPICIOUS_FAILURE_THRESHOLD": 3,
                    "SUSPICIOUS_LOOKBACK_MINUTES": 60,
                }
            ),
        }
    )

    token_service = await get_tracking_token_service(
        codec=codec, store=revocation_store, settings=tuned
    )
    admin_service = await get_admin_session_service(
        store=revocation_store,
        audit_logger=object(),  # type: ignore[arg-type]
        settings=tuned,
    )

    assert token_service.token_ttl.total_seconds() == 300
    assert admin_service.failure_threshold == 3
    assert admin_service.lookback.total_seconds() == 3600
