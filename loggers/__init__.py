import logging
from logging import FileHandler, Logger, LogRecord, StreamHandler
import os
import re
from typing import Any

from src.main.config import find_project_root, get_app_config

# header.payload.signature, each segment base64url
_SIGNED_TOKEN_PATTERN = re.compile(
    r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"
)

LOG_DIR = os.path.join(find_project_root(), "logs")
LOG_FILE = os.path.join(LOG_DIR, "debug.log")

if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR)

logging_format = "%(asctime)s [%(levelname)s]|[%(process)d]| %(name)s: %(message)s"
time_logging_format = "%Y-%m-%d %H:%M:%S"

_app_config = get_app_config()
log_level = getattr(logging, _app_config.LOG_LEVEL.upper(), logging.INFO)
file_log_level = getattr(logging, _app_config.LOG_LEVEL_FILE.upper(), logging.WARNING)


class SignedTokenRedactionFilter(logging.Filter):
    """Replace anything shaped like a signed token before a record is emitted."""

    def filter(self, record: LogRecord) -> bool:
        message = record.getMessage()
        if _SIGNED_TOKEN_PATTERN.search(message):
            record.msg = redact_tokens(message)
            record.args = None
        return True


def redact_tokens(text: str) -> str:
    return _SIGNED_TOKEN_PATTERN.sub("<redacted-token>", text)


def get_file_handler() -> FileHandler:
    file_handler = logging.FileHandler(LOG_FILE, "a", "utf-8")
    file_handler.setLevel(file_log_level)
    file_handler.setFormatter(logging.Formatter(logging_format, time_logging_format))
    file_handler.addFilter(SignedTokenRedactionFilter())
    return file_handler


def get_stream_handler() -> StreamHandler:  # type: ignore
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(logging.Formatter(logging_format, time_logging_format))
    stream_handler.addFilter(SignedTokenRedactionFilter())
    return stream_handler


def get_logger(name: Any, *, plain_format: bool = False) -> Logger:
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(log_level)

    if plain_format:
        formatter = logging.Formatter(
            "%(asctime)s [%(process)d]| %(message)s", time_logging_format
        )
        stream_handler = StreamHandler()
        stream_handler.setLevel(log_level)
        stream_handler.setFormatter(formatter)
        stream_handler.addFilter(SignedTokenRedactionFilter())
        logger.addHandler(stream_handler)
    else:
        logger.addHandler(get_file_handler())
        logger.addHandler(get_stream_handler())

    logger.propagate = False
    return logger
