from fastapi import APIRouter, Depends

from src.core.utils.datetime_utils import get_utc_now, truncate_to_seconds
from src.system.dependencies import get_health_service
from src.system.schemas import HealthCheckResponse
from src.system.services import HealthService

router = APIRouter()


@router.get("/health/", response_model=HealthCheckResponse)
@router.head("/health/", response_model=HealthCheckResponse, include_in_schema=False)
async def check_health(
    health_service: HealthService = Depends(get_health_service),
) -> HealthCheckResponse:
    """
    Readiness probe. Answers 503 when Redis does not respond: without the
    revocation store no tracking token can be verified.
    """
    return await health_service.get_status()


@router.get("/time/", response_model=dict)
def get_utc_time() -> dict[str, str]:
    """Server UTC time in whole seconds, the resolution of token timestamps."""
    return {"time": truncate_to_seconds(get_utc_now()).isoformat()}
