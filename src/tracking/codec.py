"""
Signed tracking-token codec.

Tokens are compact JWS strings (``header.payload.signature``) signed with an
HMAC key. The key is wrapped in :class:`TokenSigningKey`, built once from
configuration at application startup and handed to :class:`TokenCodec`; the
codec never reads configuration on its own.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, cast

import jwt
from pydantic import ValidationError

from loggers import get_logger
from src.core.utils.datetime_utils import (
    from_epoch_seconds,
    get_utc_now,
    to_epoch_seconds,
)
from src.main.config import TrackingConfig
from src.tracking.exceptions import (
    EncodingError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenExpiredError,
)
from src.tracking.jwt_payload_schema import TrackingJWTPayload
from src.tracking.schemas import TokenPayload

logger = get_logger(__name__)

SEGMENT_COUNT = 3
REQUIRED_CLAIMS = ("sub", "nwl", "iat", "exp", "jti")
SUPPORTED_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})


@dataclass(frozen=True, slots=True)
class TokenSigningKey:
    """Process-wide signing secret. Immutable once constructed."""

    secret: str = field(repr=False)
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.secret or not self.secret.strip():
            raise ValueError("Signing secret must not be empty")
        if self.algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {self.algorithm}")

    @classmethod
    def from_config(cls, tracking_config: TrackingConfig) -> "TokenSigningKey":
        return cls(
            secret=tracking_config.TRACKING_TOKEN_SECRET_KEY.get_secret_value(),
            algorithm=tracking_config.TRACKING_TOKEN_ALGORITHM,
        )


class TokenCodec:
    def __init__(self, signing_key: TokenSigningKey) -> None:
        self._signing_key = signing_key

    @property
    def algorithm(self) -> str:
        return self._signing_key.algorithm

    def encode(self, payload: TokenPayload) -> str:
        """
        Serialize and sign a payload.

        Claims are emitted in a fixed order with sorted class ids, so equal
        payloads always produce byte-identical tokens.

        Raises:
            EncodingError: If a required field is missing or the validity
                window is empty.
        """
        missing = [
            name
            for name in ("subject", "newsletter_id", "token_id")
            if not getattr(payload, name, None)
        ]
        if missing:
            raise EncodingError(
                "Token payload is missing required fields",
                additional_info={"missing": missing},
            )
        issued_at = to_epoch_seconds(payload.issued_at)
        expires_at = to_epoch_seconds(payload.expires_at)
        if expires_at <= issued_at:
            raise EncodingError("Token must expire after it is issued")

        claims: TrackingJWTPayload = {
            "sub": payload.subject,
            "nwl": payload.newsletter_id,
            "cls": sorted(payload.class_ids),
            "iat": issued_at,
            "exp": expires_at,
            "jti": payload.token_id,
        }
        encoded = jwt.encode(
            dict(claims),
            self._signing_key.secret,
            algorithm=self._signing_key.algorithm,
        )
        return str(encoded)

    def decode(self, token: str, *, now: datetime | None = None) -> TokenPayload:
        """
        Verify and parse a signed token.

        The signature is checked before any claim is trusted; expiry is checked
        last against ``now`` (defaults to the current UTC time).

        Raises:
            MalformedTokenError: Wrong segment count, non-ASCII text,
                undecodable segments or missing/ill-typed claims.
            InvalidSignatureError: Signature mismatch or unexpected algorithm.
            TokenExpiredError: ``now`` is past the token's expiry.
        """
        if not isinstance(token, str):
            raise MalformedTokenError("Token must be a string")

        segments = token.split(".")
        if len(segments) != SEGMENT_COUNT or not all(segments):
            raise MalformedTokenError(
                f"Token must consist of exactly {SEGMENT_COUNT} segments"
            )
        if not token.isascii():
            raise MalformedTokenError("Token must be ASCII")

        try:
            raw_claims = jwt.decode(
                token,
                self._signing_key.secret,
                algorithms=[self._signing_key.algorithm],
                options={
                    "verify_signature": True,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": list(REQUIRED_CLAIMS),
                },
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as exc:
            raise InvalidSignatureError("Token signature is invalid") from exc
        except jwt.MissingRequiredClaimError as exc:
            raise MalformedTokenError(
                "Token is missing a required claim",
                additional_info={"claim": exc.claim},
            ) from exc
        except jwt.PyJWTError as exc:
            raise MalformedTokenError("Token could not be decoded") from exc

        payload = self._payload_from_claims(raw_claims)

        current = now or get_utc_now()
        if current > payload.expires_at:
            raise TokenExpiredError("Token has expired")

        return payload

    @staticmethod
    def _payload_from_claims(raw_claims: dict[str, Any]) -> TokenPayload:
        issued_at = raw_claims.get("iat")
        expires_at = raw_claims.get("exp")
        class_ids = raw_claims.get("cls", [])

        for value in (issued_at, expires_at):
            if isinstance(value, bool) or not isinstance(value, int):
                raise MalformedTokenError("Token timestamps must be integers")
        if not isinstance(class_ids, list) or not all(
            isinstance(item, str) for item in class_ids
        ):
            raise MalformedTokenError("Token class ids must be a list of strings")

        claims = cast(TrackingJWTPayload, raw_claims)
        try:
            return TokenPayload(
                subject=claims["sub"],
                newsletter_id=claims["nwl"],
                class_ids=frozenset(class_ids),
                issued_at=from_epoch_seconds(claims["iat"]),
                expires_at=from_epoch_seconds(claims["exp"]),
                token_id=claims["jti"],
            )
        except ValidationError as exc:
            logger.debug("Rejected token claims: %s", exc.errors(include_input=False))
            raise MalformedTokenError("Token claims are invalid") from exc
