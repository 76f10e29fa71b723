from functools import lru_cache
import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

logger = logging.getLogger(__name__)


class RedisConfig(BaseModel):
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DATABASE: str = "0"
    REDIS_SOCKET_TIMEOUT: float = Field(2.0, gt=0)
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(30, ge=0)

    model_config = ConfigDict(extra="ignore")

    @property
    def dsn(self) -> str:
        return (
            f"redis://:"
            f"{self.REDIS_PASSWORD}@"
            f"{self.REDIS_HOST}:"
            f"{self.REDIS_PORT}/"
            f"{self.REDIS_DATABASE}"
        )


class SentryConfig(BaseModel):
    SENTRY_DSN: str | None = None
    SENTRY_ENV: str = "development"
    SENTRY_ENABLED: bool = False

    model_config = ConfigDict(extra="ignore")


class TrackingConfig(BaseModel):
    TRACKING_TOKEN_SECRET_KEY: SecretStr
    TRACKING_TOKEN_ALGORITHM: str = "HS256"
    TRACKING_TOKEN_EXPIRE_MINUTES: int = Field(30, gt=0)

    model_config = ConfigDict(extra="ignore")

    @field_validator("TRACKING_TOKEN_SECRET_KEY")
    @classmethod
    def secret_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("TRACKING_TOKEN_SECRET_KEY must not be empty")
        return v

    @field_validator("TRACKING_TOKEN_ALGORITHM")
    @classmethod
    def hmac_algorithm_only(cls, v: str) -> str:
        if v not in {"HS256", "HS384", "HS512"}:
            raise ValueError("Only HMAC algorithms are supported for tracking tokens")
        return v


class AdminConfig(BaseModel):
    ADMIN_API_KEY: SecretStr

    model_config = ConfigDict(extra="ignore")


class SecurityConfig(BaseModel):
    SUSPICIOUS_FAILURE_THRESHOLD: int = Field(5, ge=0)
    SUSPICIOUS_LOOKBACK_MINUTES: int = Field(15, gt=0)
    AUTH_EVENTS_RETENTION_DAYS: int = Field(30, gt=0)

    model_config = ConfigDict(extra="ignore")


class AppConfig(BaseModel):
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    TESTING: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_LEVEL_FILE: str = "WARNING"

    CORS_ALLOWED_ORIGINS: list[str] = Field(["*"])
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOWED_METHODS: list[str] = Field(["*"])
    CORS_ALLOWED_HEADERS: list[str] = Field(["*"])
    CORS_EXPOSE_HEADERS: list[str] = Field(["*"])

    PROJECT_NAME: str = "newsletter-tracking"

    model_config = ConfigDict(extra="ignore")

    @field_validator(
        "CORS_ALLOWED_ORIGINS",
        "CORS_ALLOWED_METHODS",
        "CORS_ALLOWED_HEADERS",
        "CORS_EXPOSE_HEADERS",
        mode="before",
    )
    @classmethod
    def parse_cors_list(cls, v: Any) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip().startswith("[") and v.strip().endswith("]"):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(item) for item in parsed]
            except json.JSONDecodeError:
                pass
        sep = "," if "," in v else ";"
        return [item.strip() for item in v.split(sep) if item.strip()]


class Config(BaseModel):
    app: AppConfig
    redis: RedisConfig
    sentry: SentryConfig
    tracking: TrackingConfig
    admin: AdminConfig
    security: SecurityConfig

    model_config = ConfigDict(extra="ignore")


def _load_environment() -> dict[str, Any]:
    """Process environment merged over the .env file (.env.test when TESTING=true)."""
    env_filename = ".env.test" if os.getenv("TESTING") == "true" else ".env"
    env_file_values = dotenv_values(env_filename)
    return {
        k: v
        for k, v in {**env_file_values, **dict(os.environ)}.items()
        if v is not None
    }


@lru_cache
def get_app_config() -> AppConfig:
    """
    Application section only. Needs no secrets, so it is safe to read at import
    time (the logging setup does).
    """
    return AppConfig(**_load_environment())


@lru_cache
def get_settings() -> Config:
    """
    Cached settings factory. Override in tests via monkeypatching or
    dependency overrides.
    """
    merged_env = _load_environment()

    return Config(
        app=AppConfig(**merged_env),
        redis=RedisConfig(**merged_env),
        sentry=SentryConfig(**merged_env),
        tracking=TrackingConfig(**merged_env),
        admin=AdminConfig(**merged_env),
        security=SecurityConfig(**merged_env),
    )


# ----- Config utils ----- #
PROJECT_ROOT_MARKERS = ("pyproject.toml", ".git")


def find_project_root(start_path: Path | None = None, max_depth: int = 10) -> Path:
    """
    Nearest ancestor of ``start_path`` (cwd by default) holding one of
    ``PROJECT_ROOT_MARKERS``. Falls back to ``start_path`` itself. The log
    directory is anchored here.
    """
    start_path = (start_path or Path.cwd()).resolve()
    for depth, candidate in enumerate((start_path, *start_path.parents)):
        if depth > max_depth:
            break
        if any((candidate / marker).exists() for marker in PROJECT_ROOT_MARKERS):
            logger.info("Project root found: %s", candidate)
            return candidate

    logger.error(
        "No project root found within %s parent directories from %s",
        max_depth,
        start_path,
    )
    return start_path
