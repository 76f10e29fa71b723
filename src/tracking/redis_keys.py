"""Redis key layout shared by the revocation store and the audit logger."""

from src.tracking.enums import AuthEventType


def session_key(token_hash: str) -> str:
    return f"tracking:session:{token_hash}"


def user_sessions_key(user_id: str) -> str:
    return f"tracking:sessions:{user_id}"


def revoked_key(token_hash: str) -> str:
    return f"tracking:revoked:{token_hash}"


def events_all_key() -> str:
    return "auth_events:all"


def events_type_key(event_type: AuthEventType | str) -> str:
    return f"auth_events:type:{event_type}"


def events_user_key(user_id: str) -> str:
    return f"auth_events:user:{user_id}"


def user_channel(user_id: str) -> str:
    # Same name as the per-user index; channels and keys live in separate namespaces
    return f"auth_events:user:{user_id}"
