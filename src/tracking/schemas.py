from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from src.core.schemas import (
    Base,
    FrozenBase,
    StripIdentifierMixin,
    VerbatimIdentifierMixin,
)
from src.tracking.enums import (
    AdminAction,
    AuthEventType,
    AuthMethod,
    ErrorKind,
    RevocationReason,
)


class TokenContext(VerbatimIdentifierMixin, FrozenBase):
    """Opaque reading context embedded into a tracking token."""

    newsletter_id: str = Field(min_length=1)
    class_ids: frozenset[str] = frozenset()


class TokenPayload(VerbatimIdentifierMixin, FrozenBase):
    """
    Decoded content of a tracking token. Never mutated once issued; a new token
    always carries a new ``token_id``.
    """

    subject: str = Field(min_length=1)
    newsletter_id: str = Field(min_length=1)
    class_ids: frozenset[str] = frozenset()
    issued_at: datetime
    expires_at: datetime
    token_id: str = Field(min_length=1)

    @model_validator(mode="after")
    def _window_is_positive(self) -> "TokenPayload":
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")
        return self


@dataclass(frozen=True, slots=True)
class VerificationResult:
    valid: bool
    payload: TokenPayload | None = None
    reason: ErrorKind | None = None

    @classmethod
    def accepted(cls, payload: TokenPayload) -> "VerificationResult":
        return cls(valid=True, payload=payload)

    @classmethod
    def rejected(cls, reason: ErrorKind) -> "VerificationResult":
        return cls(valid=False, reason=reason)


class RevocationRecord(FrozenBase):
    token_hash: str
    revoked: bool = True
    reason: RevocationReason
    revoked_at: datetime


class SessionRecord(FrozenBase):
    session_id: str
    user_id: str
    token_hash: str
    newsletter_id: str
    created_at: datetime
    expires_at: datetime


class AuthEvent(FrozenBase):
    id: str
    user_id: str | None = None
    event_type: AuthEventType
    auth_method: AuthMethod | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime

    @property
    def is_forced_logout(self) -> bool:
        return (
            self.event_type == AuthEventType.LOGOUT
            and (self.metadata or {}).get("action") == AdminAction.FORCE_LOGOUT
        )


class FailureEvent(FrozenBase):
    user_id: str | None = None
    created_at: datetime


class SuspiciousActivityRecord(FrozenBase):
    user_id: str
    failure_count: int


# ----- API models ----- #
class IssueTokenModel(StripIdentifierMixin, Base):
    subject: str = Field(min_length=1, max_length=255)
    newsletter_id: str = Field(min_length=1, max_length=255)
    class_ids: list[str] = Field(default_factory=list, max_length=100)


class IssuedTokenViewModel(Base):
    token: str
    token_id: str
    expires_at: datetime


class VerifyTokenModel(Base):
    token: str = Field(min_length=1)


class TokenPayloadViewModel(Base):
    subject: str
    newsletter_id: str
    class_ids: list[str]
    issued_at: datetime
    expires_at: datetime
    token_id: str

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "TokenPayloadViewModel":
        return cls(
            subject=payload.subject,
            newsletter_id=payload.newsletter_id,
            class_ids=sorted(payload.class_ids),
            issued_at=payload.issued_at,
            expires_at=payload.expires_at,
            token_id=payload.token_id,
        )


class VerificationViewModel(Base):
    valid: bool
    reason: ErrorKind | None = None
    payload: TokenPayloadViewModel | None = None

    @classmethod
    def from_result(cls, result: VerificationResult) -> "VerificationViewModel":
        return cls(
            valid=result.valid,
            reason=result.reason,
            payload=(
                TokenPayloadViewModel.from_payload(result.payload)
                if result.payload is not None
                else None
            ),
        )


class RevokeTokenModel(Base):
    token: str = Field(min_length=1)
    reason: RevocationReason = RevocationReason.USER_LOGOUT


class RevokeHashModel(Base):
    token_hash: str = Field(pattern=r"^[0-9a-f]{64}$")
    reason: RevocationReason = RevocationReason.ADMIN_ACTION
