from enum import StrEnum


class ErrorKind(StrEnum):
    MALFORMED = "malformed"  # Wrong segment count, bad encoding or missing claims
    INVALID_SIGNATURE = "invalid_signature"  # Tampered or signed with another key
    EXPIRED = "expired"
    REVOKED = "revoked"
    REVOCATION_CHECK_FAILED = "revocation_check_failed"  # Store unreachable on read
    STORE_ERROR = "store_error"  # Store failure on a write path


class RevocationReason(StrEnum):
    USER_LOGOUT = "user_logout"
    SECURITY_BREACH = "security_breach"
    ADMIN_ACTION = "admin_action"


class AuthEventType(StrEnum):
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILURE = "login_failure"
    LOGOUT = "logout"
    OAUTH_GOOGLE_START = "oauth_google_start"
    OAUTH_GOOGLE_SUCCESS = "oauth_google_success"
    OAUTH_GOOGLE_FAILURE = "oauth_google_failure"
    MAGIC_LINK_SENT = "magic_link_sent"
    MAGIC_LINK_VERIFIED = "magic_link_verified"
    MAGIC_LINK_EXPIRED = "magic_link_expired"
    TOKEN_REFRESH_SUCCESS = "token_refresh_success"
    TOKEN_REFRESH_FAILURE = "token_refresh_failure"
    SESSION_EXPIRED = "session_expired"

    @classmethod
    def values(cls) -> set[str]:
        return {item.value for item in cls.__members__.values()}


class AuthMethod(StrEnum):
    GOOGLE_OAUTH = "google_oauth"
    MAGIC_LINK = "magic_link"
    EMAIL_PASSWORD = "email_password"


class AdminAction(StrEnum):
    FORCE_LOGOUT = "admin_force_logout"
