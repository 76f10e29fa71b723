from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any

from src.tracking.enums import AuthEventType, AuthMethod, RevocationReason
from src.tracking.schemas import AuthEvent, FailureEvent, SessionRecord


class RevocationStore(ABC):
    """
    Durable revocation state and the session index behind it.

    Implementations raise :class:`~src.tracking.exceptions.StoreError` when the
    backing service cannot be reached; every method is a single round trip.
    """

    @abstractmethod
    async def is_revoked(self, token_hash: str) -> bool:
        """Return True if a revocation record exists for the hash."""
        raise NotImplementedError

    @abstractmethod
    async def revoke(self, token_hash: str, reason: RevocationReason) -> None:
        """Create or overwrite the revocation record for a hash."""
        raise NotImplementedError

    @abstractmethod
    async def revoke_all_for_user(self, user_id: str) -> bool:
        """Revoke every registered session of a user. True once applied."""
        raise NotImplementedError

    @abstractmethod
    async def register_session(self, record: SessionRecord) -> None:
        """Index an issued token as one of its subject's sessions."""
        raise NotImplementedError

    @abstractmethod
    async def list_sessions(self, user_id: str) -> Sequence[SessionRecord]:
        """Sessions of a user that are neither expired nor revoked, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def query_failure_events(self, since: datetime) -> Sequence[FailureEvent]:
        """Login-failure events recorded at or after ``since``."""
        raise NotImplementedError


class AuditLogger(ABC):
    @abstractmethod
    async def log_auth_event(
        self,
        *,
        user_id: str | None,
        event_type: AuthEventType,
        auth_method: AuthMethod | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuthEvent | None:
        """Append an authentication event; returns the stored event, if any."""
        raise NotImplementedError


class AuthEventSubscriber(ABC):
    @abstractmethod
    def subscribe(
        self, user_id: str
    ) -> AbstractAsyncContextManager[AsyncIterator[AuthEvent]]:
        """Open a subscription to a user's own stream; iterate it for events."""
        raise NotImplementedError
