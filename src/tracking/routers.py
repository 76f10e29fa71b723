import asyncio
from collections.abc import AsyncIterator
from contextlib import suppress
from typing import Annotated

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from loggers import get_logger
from src.core.schemas import SuccessResponse
from src.tracking.admin.routers import router as admin_router
from src.tracking.audit import RedisAuthEventSubscriber
from src.tracking.dependencies import get_event_subscriber, get_tracking_token_service
from src.tracking.enums import ErrorKind, RevocationReason
from src.tracking.schemas import (
    AuthEvent,
    IssuedTokenViewModel,
    IssueTokenModel,
    RevokeTokenModel,
    TokenContext,
    VerificationResult,
    VerificationViewModel,
    VerifyTokenModel,
)
from src.tracking.services import TrackingTokenService

logger = get_logger(__name__)

INVALID_TOKEN_CLOSE_CODE = 4401

router = APIRouter()
tracking_router = APIRouter()


@tracking_router.post(
    "/tokens",
    response_model=IssuedTokenViewModel,
    status_code=status.HTTP_201_CREATED,
)
async def issue_tracking_token(
    form_data: IssueTokenModel,
    token_service: Annotated[
        TrackingTokenService, Depends(get_tracking_token_service)
    ],
) -> IssuedTokenViewModel:
    """
    Issue a tracking token for a reader and register it as one of their sessions.
    """
    token, payload = await token_service.issue_session(
        form_data.subject,
        TokenContext(
            newsletter_id=form_data.newsletter_id,
            class_ids=frozenset(form_data.class_ids),
        ),
    )
    return IssuedTokenViewModel(
        token=token, token_id=payload.token_id, expires_at=payload.expires_at
    )


@tracking_router.post("/tokens/verify", response_model=VerificationViewModel)
async def verify_tracking_token(
    form_data: VerifyTokenModel,
    token_service: Annotated[
        TrackingTokenService, Depends(get_tracking_token_service)
    ],
) -> VerificationViewModel:
    """
    Check a token's signature, expiry and revocation state.

    Always answers 200; a refused token is reported through ``reason``.
    """
    result = await token_service.verify_token(form_data.token)
    return VerificationViewModel.from_result(result)


@tracking_router.post("/tokens/revoke", response_model=SuccessResponse)
async def revoke_tracking_token(
    form_data: RevokeTokenModel,
    token_service: Annotated[
        TrackingTokenService, Depends(get_tracking_token_service)
    ],
) -> SuccessResponse:
    success = await token_service.revoke_token(
        form_data.token, RevocationReason(form_data.reason)
    )
    return SuccessResponse(success=success)


async def _forward_events(
    websocket: WebSocket, events: AsyncIterator[AuthEvent], user_id: str
) -> None:
    try:
        async for event in events:
            await websocket.send_json(event.model_dump(mode="json"))
            if event.is_forced_logout:
                logger.info(
                    "Closing event stream of user %s after forced logout",
                    user_id,
                    extra={"event": "event_stream_closed", "user_id": user_id},
                )
                await websocket.close(code=status.WS_1000_NORMAL_CLOSURE)
                return
    except WebSocketDisconnect:
        logger.debug("Event stream of user %s disconnected on send", user_id)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Client frames are ignored
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@tracking_router.websocket("/events")
async def stream_auth_events(
    websocket: WebSocket,
    token_service: Annotated[
        TrackingTokenService, Depends(get_tracking_token_service)
    ],
    subscriber: Annotated[RedisAuthEventSubscriber, Depends(get_event_subscriber)],
    token: str | None = Query(None),
) -> None:
    """
    Push the reader's own auth events.

    A rejected token still gets an accepted handshake, followed by a close with
    code 4401 and the rejection kind as the reason. The socket is closed by
    the server right after a forced-logout event has been delivered, and the
    subscription is released as soon as the client goes away.
    """
    result = (
        await token_service.verify_token(token)
        if token is not None
        else VerificationResult.rejected(ErrorKind.MALFORMED)
    )
    if not result.valid or result.payload is None:
        await websocket.accept()
        await websocket.close(code=INVALID_TOKEN_CLOSE_CODE, reason=result.reason)
        return

    user_id = result.payload.subject
    async with subscriber.subscribe(user_id) as events:
        await websocket.accept()
        forwarder = asyncio.create_task(_forward_events(websocket, events, user_id))
        watcher = asyncio.create_task(_wait_for_disconnect(websocket))
        tasks = {forwarder, watcher}
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task
        if watcher in done:
            logger.debug("Event stream of user %s disconnected", user_id)
        for task in done:
            task.result()


router.include_router(tracking_router, prefix="/tracking", tags=["Tracking"])
router.include_router(admin_router, prefix="/admin", tags=["Admin"])
