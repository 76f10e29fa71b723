from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

from src.tracking.admin import services as admin_services_module
from src.tracking.admin.services import AdminSessionService
from src.tracking.audit import RedisAuditLogger
from src.tracking.enums import AuthEventType, ErrorKind
from src.tracking.exceptions import StoreError
from src.tracking.schemas import FailureEvent, TokenContext
from src.tracking.services import TrackingTokenService
from src.tracking.stores import RedisRevocationStore
from tests.fakes.redis import InMemoryRedis

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=ZoneInfo("UTC"))
CONTEXT = TokenContext(newsletter_id="newsletter-1")


def _failures(user_id: str | None, count: int) -> list[FailureEvent]:
    return [
        FailureEvent(user_id=user_id, created_at=NOW - timedelta(minutes=1))
        for _ in range(count)
    ]


@pytest.fixture
def diagnostics(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    logger = MagicMock()
    monkeypatch.setattr(admin_services_module, "logger", logger)
    return logger


@pytest.fixture
def store() -> AsyncMock:
    store = AsyncMock()
    store.revoke_all_for_user.return_value = True
    store.list_sessions.return_value = []
    store.query_failure_events.return_value = []
    return store


@pytest.fixture
def audit_logger() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def admin_service(store: AsyncMock, audit_logger: AsyncMock) -> AdminSessionService:
    return AdminSessionService(store=store, audit_logger=audit_logger)


@pytest.mark.asyncio
async def test_force_logout_attributes_event_to_target(
    admin_service: AdminSessionService, store: AsyncMock, audit_logger: AsyncMock
) -> None:
    assert await admin_service.force_logout_user("user-456", "admin-123") is True

    store.revoke_all_for_user.assert_awaited_once_with("user-456")
    audit_logger.log_auth_event.assert_awaited_once_with(
        user_id="user-456",
        event_type=AuthEventType.LOGOUT,
        metadata={"action": "admin_force_logout", "adminUserId": "admin-123"},
    )


@pytest.mark.asyncio
async def test_force_logout_writes_no_event_when_not_applied(
    admin_service: AdminSessionService,
    store: AsyncMock,
    audit_logger: AsyncMock,
    diagnostics: MagicMock,
) -> None:
    store.revoke_all_for_user.return_value = False

    assert await admin_service.force_logout_user("user-456", "admin-123") is False

    audit_logger.log_auth_event.assert_not_awaited()
    diagnostics.error.assert_called_once()


@pytest.mark.asyncio
async def test_force_logout_writes_no_event_when_store_raises(
    admin_service: AdminSessionService,
    store: AsyncMock,
    audit_logger: AsyncMock,
    diagnostics: MagicMock,
) -> None:
    store.revoke_all_for_user.side_effect = StoreError("Failed to revoke user sessions")

    assert await admin_service.force_logout_user("user-456", "admin-123") is False

    audit_logger.log_auth_event.assert_not_awaited()
    assert diagnostics.error.call_args.kwargs["extra"]["event"] == (
        "force_logout_failed"
    )


@pytest.mark.asyncio
async def test_force_logout_is_idempotent(
    admin_service: AdminSessionService, audit_logger: AsyncMock
) -> None:
    assert await admin_service.force_logout_user("user-456", "admin-123") is True
    assert await admin_service.force_logout_user("user-456", "admin-123") is True

    assert audit_logger.log_auth_event.await_count == 2


@pytest.mark.asyncio
async def test_force_logout_end_to_end_revokes_registered_tokens(
    token_service: TrackingTokenService,
    revocation_store: RedisRevocationStore,
    fake_redis: InMemoryRedis,
) -> None:
    audit = RedisAuditLogger(redis_client=fake_redis)  # type: ignore[arg-type]
    service = AdminSessionService(store=revocation_store, audit_logger=audit)
    first, _ = await token_service.issue_session("user-456", CONTEXT)
    second, _ = await token_service.issue_session("user-456", CONTEXT)
    bystander, _ = await token_service.issue_session("user-789", CONTEXT)

    assert await service.force_logout_user("user-456", "admin-123") is True

    for token in (first, second):
        result = await token_service.verify_token(token)
        assert result.reason == ErrorKind.REVOKED
    assert (await token_service.verify_token(bystander)).valid is True
    assert await service.get_user_sessions("user-456") == []

    events = await audit.list_user_events("user-456")
    assert len(events) == 1
    assert events[0].is_forced_logout
    assert events[0].metadata == {
        "action": "admin_force_logout",
        "adminUserId": "admin-123",
    }
    assert await audit.list_user_events("admin-123") == []


@pytest.mark.asyncio
async def test_get_user_sessions_passes_through(
    admin_service: AdminSessionService, store: AsyncMock
) -> None:
    store.list_sessions.return_value = ["session"]

    assert await admin_service.get_user_sessions("user-456") == ["session"]


@pytest.mark.asyncio
async def test_get_user_sessions_degrades_to_empty(
    admin_service: AdminSessionService, store: AsyncMock, diagnostics: MagicMock
) -> None:
    store.list_sessions.side_effect = StoreError("Failed to list sessions")

    assert await admin_service.get_user_sessions("user-456") == []

    diagnostics.error.assert_called_once()
    assert diagnostics.error.call_args.kwargs["extra"] == {
        "event": "session_list_failed",
        "user_id": "user-456",
    }


@pytest.mark.asyncio
async def test_detect_suspicious_activity_threshold(
    admin_service: AdminSessionService, store: AsyncMock, diagnostics: MagicMock
) -> None:
    store.query_failure_events.return_value = (
        _failures("u1", 6) + _failures("u2", 2) + _failures("u3", 5)
    )

    records = await admin_service.detect_suspicious_activity()

    assert [(r.user_id, r.failure_count) for r in records] == [("u1", 6)]
    diagnostics.warning.assert_called_once()


@pytest.mark.asyncio
async def test_detect_suspicious_activity_ordering_and_anonymous_events(
    admin_service: AdminSessionService, store: AsyncMock
) -> None:
    store.query_failure_events.return_value = (
        _failures("b-user", 7)
        + _failures("a-user", 7)
        + _failures("c-user", 9)
        + _failures(None, 20)
    )

    records = await admin_service.detect_suspicious_activity()

    assert [(r.user_id, r.failure_count) for r in records] == [
        ("c-user", 9),
        ("a-user", 7),
        ("b-user", 7),
    ]


@pytest.mark.asyncio
async def test_detect_suspicious_activity_uses_lookback_window(
    store: AsyncMock, audit_logger: AsyncMock, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(admin_services_module, "get_utc_now", lambda: NOW)
    service = AdminSessionService(
        store=store, audit_logger=audit_logger, lookback=timedelta(minutes=15)
    )

    await service.detect_suspicious_activity()

    store.query_failure_events.assert_awaited_once_with(NOW - timedelta(minutes=15))


@pytest.mark.asyncio
async def test_detect_suspicious_activity_degrades_to_empty(
    admin_service: AdminSessionService, store: AsyncMock, diagnostics: MagicMock
) -> None:
    store.query_failure_events.side_effect = StoreError("Query failed")

    assert await admin_service.detect_suspicious_activity() == []

    diagnostics.error.assert_called_once()
    diagnostics.warning.assert_not_called()
