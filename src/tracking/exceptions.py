from typing import Any

from src.core.errors.exceptions import (
    InfrastructureException,
    InstanceProcessingException,
    UnauthorizedException,
)
from src.tracking.enums import ErrorKind


class TokenError(UnauthorizedException):
    """Base class for every reason a tracking token is refused."""

    kind: ErrorKind

    def __init__(
        self, message: str | None = None, additional_info: dict[str, Any] | None = None
    ):
        super().__init__(message or self.kind.value, additional_info)


class MalformedTokenError(TokenError):
    kind = ErrorKind.MALFORMED


class InvalidSignatureError(TokenError):
    kind = ErrorKind.INVALID_SIGNATURE


class TokenExpiredError(TokenError):
    kind = ErrorKind.EXPIRED


class TokenRevokedError(TokenError):
    kind = ErrorKind.REVOKED


class EncodingError(InstanceProcessingException):
    """Raised at issuance when a payload is missing a required field."""


class StoreError(InfrastructureException):
    """The revocation store could not complete a read or a write."""

    kind = ErrorKind.STORE_ERROR
