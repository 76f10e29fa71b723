from collections import Counter
from datetime import timedelta

from loggers import get_logger
from src.core.utils.datetime_utils import get_utc_now
from src.tracking.enums import AdminAction, AuthEventType
from src.tracking.interfaces import AuditLogger, RevocationStore
from src.tracking.schemas import SessionRecord, SuspiciousActivityRecord

logger = get_logger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_LOOKBACK = timedelta(minutes=15)


class AdminSessionService:
    """
    Administrative session management: forced logout, session listing and
    repeated-failure detection.

    Read operations degrade to an empty result when the store fails; the fault
    is reported through the module logger, not through the return value.
    """

    def __init__(
        self,
        store: RevocationStore,
        audit_logger: AuditLogger,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        lookback: timedelta = DEFAULT_LOOKBACK,
    ) -> None:
        self.store = store
        self.audit_logger = audit_logger
        self.failure_threshold = failure_threshold
        self.lookback = lookback

    async def force_logout_user(
        self, target_user_id: str, acting_admin_id: str
    ) -> bool:
        """
        Revoke every session of ``target_user_id``.

        The logout event is written on the target's own stream, not the
        admin's: the target's live session listens there and terminates
        itself. No event is written unless the revocation was applied.
        """
        try:
            revoked = await self.store.revoke_all_for_user(target_user_id)
            if not revoked:
                logger.error(
                    "Force logout of user %s was not applied by the store",
                    target_user_id,
                    extra={"event": "force_logout_failed", "user_id": target_user_id},
                )
                return False

            await self.audit_logger.log_auth_event(
                user_id=target_user_id,
                event_type=AuthEventType.LOGOUT,
                metadata={
                    "action": AdminAction.FORCE_LOGOUT.value,
                    "adminUserId": acting_admin_id,
                },
            )
        except Exception as exc:
            logger.error(
                "Force logout of user %s failed",
                target_user_id,
                exc_info=exc,
                extra={"event": "force_logout_failed", "user_id": target_user_id},
            )
            return False

        logger.info(
            "Admin %s force-logged out user %s",
            acting_admin_id,
            target_user_id,
            extra={"event": "force_logout", "user_id": target_user_id},
        )
        return True

    async def get_user_sessions(self, user_id: str) -> list[SessionRecord]:
        try:
            return list(await self.store.list_sessions(user_id))
        except Exception as exc:
            logger.error(
                "Failed to fetch sessions for user %s",
                user_id,
                exc_info=exc,
                extra={"event": "session_list_failed", "user_id": user_id},
            )
            return []

    async def detect_suspicious_activity(self) -> list[SuspiciousActivityRecord]:
        """
        Users with more than ``failure_threshold`` login failures inside the
        lookback window, most failures first.
        """
        since = get_utc_now() - self.lookback
        try:
            events = await self.store.query_failure_events(since)
        except Exception as exc:
            logger.error(
                "Failed to query failure events",
                exc_info=exc,
                extra={"event": "suspicious_activity_query_failed"},
            )
            return []

        failure_counts = Counter(event.user_id for event in events if event.user_id)
        suspicious = [
            SuspiciousActivityRecord(user_id=user_id, failure_count=count)
            for user_id, count in failure_counts.items()
            if count > self.failure_threshold
        ]
        suspicious.sort(key=lambda r: (-r.failure_count, r.user_id))

        if suspicious:
            logger.warning(
                "Detected %s user(s) with suspicious activity",
                len(suspicious),
                extra={"event": "suspicious_activity_detected"},
            )
        return suspicious
