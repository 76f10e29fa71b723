import logging

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from loggers import get_logger
from src.main.config import Config, get_settings

logger = get_logger(__name__)

_sentry_initialized = False


def init_sentry(settings: Config | None = None) -> None:
    """
    Initialize the Sentry client once using environment variables.
    """
    global _sentry_initialized

    if _sentry_initialized:
        return

    settings = settings or get_settings()

    if settings.app.DEBUG or settings.app.TESTING:
        logger.info("DEBUG/TESTING enabled. Skipping Sentry initialization.")
        return

    if not settings.sentry.SENTRY_ENABLED or not settings.sentry.SENTRY_DSN:
        logger.info("Sentry disabled or DSN empty. Skipping Sentry initialization.")
        return

    sentry_sdk.init(
        dsn=settings.sentry.SENTRY_DSN,
        environment=settings.sentry.SENTRY_ENV,
        release=settings.app.VERSION,
        # Request bodies carry raw tracking tokens
        send_default_pii=False,
        max_request_body_size="never",
        integrations=[
            LoggingIntegration(
                level=logging.INFO,  # breadcrumbs from INFO and up
                event_level=logging.CRITICAL,  # only CRITICAL+ logs become Sentry events; lower levels require explicit capture
            ),
        ],
    )
    _sentry_initialized = True
    logger.info("Sentry initialized.")
