from datetime import timedelta
from uuid import uuid4

from pydantic import ValidationError

from loggers import get_logger
from src.core.utils.datetime_utils import get_utc_now, truncate_to_seconds
from src.tracking import hasher
from src.tracking.codec import TokenCodec
from src.tracking.enums import ErrorKind, RevocationReason
from src.tracking.exceptions import EncodingError, StoreError, TokenError
from src.tracking.interfaces import RevocationStore
from src.tracking.schemas import (
    SessionRecord,
    TokenContext,
    TokenPayload,
    VerificationResult,
)

logger = get_logger(__name__)

DEFAULT_TOKEN_TTL = timedelta(minutes=30)


class TrackingTokenService:
    """
    Issues and verifies tracking tokens.

    Verification is a pure read: one signature check followed by one
    revocation lookup. A revocation store that cannot be reached yields
    ``revocation_check_failed`` and the token is not accepted.
    """

    def __init__(
        self,
        codec: TokenCodec,
        store: RevocationStore,
        token_ttl: timedelta = DEFAULT_TOKEN_TTL,
    ) -> None:
        if token_ttl <= timedelta(0):
            raise ValueError("token_ttl must be positive")
        self.codec = codec
        self.store = store
        self.token_ttl = token_ttl

    def issue_token(self, subject: str, context: TokenContext) -> str:
        """
        Build a fresh payload for ``subject`` and sign it. Nothing is persisted.

        Raises:
            EncodingError: If the subject or the newsletter id is missing.
        """
        return self.codec.encode(self.build_payload(subject, context))

    def build_payload(self, subject: str, context: TokenContext) -> TokenPayload:
        issued_at = truncate_to_seconds(get_utc_now())
        try:
            return TokenPayload(
                subject=subject,
                newsletter_id=context.newsletter_id,
                class_ids=context.class_ids,
                issued_at=issued_at,
                expires_at=issued_at + self.token_ttl,
                token_id=str(uuid4()),
            )
        except ValidationError as exc:
            raise EncodingError(
                "Cannot issue a token for an incomplete payload",
                additional_info={"fields": [e["loc"] for e in exc.errors()]},
            ) from exc

    async def issue_session(
        self, subject: str, context: TokenContext
    ) -> tuple[str, TokenPayload]:
        """
        Issue a token and register it as a session of ``subject``.

        A token that cannot be registered is not handed out: it would be
        invisible to a forced logout.

        Raises:
            EncodingError: If the subject or the newsletter id is missing.
            StoreError: If the session could not be registered.
        """
        payload = self.build_payload(subject, context)
        token = self.codec.encode(payload)
        if not await self.register_token(token, payload):
            raise StoreError(
                "Issued token could not be registered",
                additional_info={"user_id": payload.subject},
            )
        return token, payload

    async def verify_token(self, token: str) -> VerificationResult:
        try:
            payload = self.codec.decode(token, now=get_utc_now())
        except TokenError as exc:
            logger.debug("Token rejected by codec: %s", exc.kind)
            return VerificationResult.rejected(exc.kind)

        token_hash = hasher.digest(token)
        try:
            revoked = await self.store.is_revoked(token_hash)
        except StoreError as exc:
            logger.warning(
                "Revocation check failed for token %s",
                hasher.short_hash(token_hash),
                exc_info=exc,
                extra={"event": "revocation_check_failed", "user_id": payload.subject},
            )
            return VerificationResult.rejected(ErrorKind.REVOCATION_CHECK_FAILED)

        if revoked:
            return VerificationResult.rejected(ErrorKind.REVOKED)
        return VerificationResult.accepted(payload)

    def hash_of(self, token: str) -> str:
        return hasher.digest(token)

    async def register_token(self, token: str, payload: TokenPayload) -> bool:
        """Index an issued token under its subject for listing and bulk revocation."""
        record = SessionRecord(
            session_id=payload.token_id,
            user_id=payload.subject,
            token_hash=hasher.digest(token),
            newsletter_id=payload.newsletter_id,
            created_at=payload.issued_at,
            expires_at=payload.expires_at,
        )
        try:
            await self.store.register_session(record)
        except StoreError as exc:
            logger.error(
                "Failed to register session %s for user %s",
                record.session_id,
                record.user_id,
                exc_info=exc,
                extra={"event": "session_register_failed", "user_id": record.user_id},
            )
            return False
        return True

    async def revoke_token(
        self, token: str, reason: RevocationReason = RevocationReason.USER_LOGOUT
    ) -> bool:
        return await self.revoke_hash(hasher.digest(token), reason)

    async def revoke_hash(self, token_hash: str, reason: RevocationReason) -> bool:
        reason = RevocationReason(reason)
        try:
            await self.store.revoke(token_hash, reason)
        except StoreError as exc:
            logger.error(
                "Failed to revoke token %s",
                hasher.short_hash(token_hash),
                exc_info=exc,
                extra={"event": "revocation_write_failed", "reason": reason.value},
            )
            return False
        logger.info(
            "Token %s revoked (%s)",
            hasher.short_hash(token_hash),
            reason.value,
            extra={"event": "token_revoked", "reason": reason.value},
        )
        return True
