from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import FastAPI
from fastapi.testclient import TestClient
import pytest

from src.core.errors.exceptions import InfrastructureException
from src.main.presentation import include_exceptions_handlers
from src.system import routers
from src.system.dependencies import get_health_service
from src.system.schemas import HealthCheckResponse


class FakeHealthService:
    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy

    async def get_status(self) -> HealthCheckResponse:
        if not self.healthy:
            raise InfrastructureException("System health check failed")
        return HealthCheckResponse(version="9.9.9")


def _build_client(health_service: FakeHealthService | None = None) -> TestClient:
    app = FastAPI()
    app.include_router(routers.router)
    include_exceptions_handlers(app)
    if health_service is not None:
        app.dependency_overrides[get_health_service] = lambda: health_service
    return TestClient(app)


def test_check_health_endpoint() -> None:
    client = _build_client(FakeHealthService())

    response = client.get("/health/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "9.9.9", "redis": "ok"}

    head_response = client.head("/health/")
    assert head_response.status_code == 200


def test_check_health_reports_outage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "src.core.errors.handlers.sentry_sdk.capture_exception", lambda _: None
    )
    client = _build_client(FakeHealthService(healthy=False))

    response = client.get("/health/")

    assert response.status_code == 503
    assert response.json()["error"] == "Infrastructure error"


def test_get_utc_time(monkeypatch: pytest.MonkeyPatch) -> None:
    fixed_now = datetime(2024, 1, 1, 12, 30, 45, 123456, tzinfo=ZoneInfo("UTC"))
    monkeypatch.setattr(routers, "get_utc_now", lambda: fixed_now)
    client = _build_client()

    response = client.get("/time/")

    assert response.status_code == 200
    assert response.json() == {"time": "2024-01-01T12:30:45+00:00"}
