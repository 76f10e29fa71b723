from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from src.core.errors.exceptions import InstanceNotFoundException
from src.core.schemas import SuccessResponse
from src.tracking.admin.services import AdminSessionService
from src.tracking.audit import RedisAuditLogger
from src.tracking.dependencies import (
    get_admin_session_service,
    get_audit_logger,
    get_revocation_store,
    get_tracking_token_service,
    require_admin,
)
from src.tracking.enums import RevocationReason
from src.tracking.hasher import short_hash
from src.tracking.schemas import (
    AuthEvent,
    RevocationRecord,
    RevokeHashModel,
    SessionRecord,
    SuspiciousActivityRecord,
)
from src.tracking.services import TrackingTokenService
from src.tracking.stores import RedisRevocationStore

router = APIRouter()

TOKEN_HASH_PATTERN = r"^[0-9a-f]{64}$"


# Declared before "/sessions/{user_id}" so the literal path wins
@router.get(
    "/sessions/suspicious-activity",
    response_model=list[SuspiciousActivityRecord],
)
async def get_suspicious_activity(
    _admin_id: Annotated[str, Depends(require_admin)],
    admin_service: Annotated[AdminSessionService, Depends(get_admin_session_service)],
) -> list[SuspiciousActivityRecord]:
    """
    Users with repeated login failures inside the configured lookback window.
    """
    return await admin_service.detect_suspicious_activity()


@router.get("/sessions/{user_id}", response_model=list[SessionRecord])
async def get_user_sessions(
    user_id: str,
    _admin_id: Annotated[str, Depends(require_admin)],
    admin_service: Annotated[AdminSessionService, Depends(get_admin_session_service)],
) -> list[SessionRecord]:
    return await admin_service.get_user_sessions(user_id)


@router.get("/sessions/{user_id}/events", response_model=list[AuthEvent])
async def get_user_auth_events(
    user_id: str,
    _admin_id: Annotated[str, Depends(require_admin)],
    audit_logger: Annotated[RedisAuditLogger, Depends(get_audit_logger)],
    limit: int = Query(50, ge=1, le=500),
) -> list[AuthEvent]:
    return await audit_logger.list_user_events(user_id, limit=limit)


@router.post("/sessions/{user_id}/force-logout", response_model=SuccessResponse)
async def force_logout_user(
    user_id: str,
    admin_id: Annotated[str, Depends(require_admin)],
    admin_service: Annotated[AdminSessionService, Depends(get_admin_session_service)],
) -> SuccessResponse:
    """
    Revoke every session of the user. The user's open event stream receives
    the logout event and closes.
    """
    success = await admin_service.force_logout_user(user_id, admin_id)
    return SuccessResponse(success=success)


@router.post("/revocations", response_model=SuccessResponse)
async def revoke_token_hash(
    form_data: RevokeHashModel,
    _admin_id: Annotated[str, Depends(require_admin)],
    token_service: Annotated[
        TrackingTokenService, Depends(get_tracking_token_service)
    ],
) -> SuccessResponse:
    success = await token_service.revoke_hash(
        form_data.token_hash, RevocationReason(form_data.reason)
    )
    return SuccessResponse(success=success)


@router.get("/revocations/{token_hash}", response_model=RevocationRecord)
async def get_revocation(
    token_hash: Annotated[str, Path(pattern=TOKEN_HASH_PATTERN)],
    _admin_id: Annotated[str, Depends(require_admin)],
    store: Annotated[RedisRevocationStore, Depends(get_revocation_store)],
) -> RevocationRecord:
    record = await store.get_revocation(token_hash)
    if record is None:
        raise InstanceNotFoundException(
            "Token hash is not revoked",
            additional_info={"token_hash": short_hash(token_hash)},
        )
    return record
