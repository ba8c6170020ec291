from __future__ import annotations

import os
import secrets
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobboard.logging import get_logger

logger = get_logger(__name__)

ASSIGNABLE_ROLES = ("employee", "employer", "management")


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for the job board API."""

    jwt_secret: str = env_field(None, "JWT_SECRET", validate_default=True)
    jwt_issuer: str = env_field("jobboard", "JWT_ISSUER")
    session_token_ttl_minutes: int = env_field(
        24 * 60,
        "SESSION_TOKEN_TTL_MINUTES",
        ge=1,
        description="Lifetime of bearer tokens issued on signup, login and verification",
    )
    verification_code_ttl_minutes: int = env_field(
        5, "VERIFICATION_CODE_TTL_MINUTES", ge=1
    )
    reset_token_ttl_minutes: int = env_field(24 * 60, "RESET_TOKEN_TTL_MINUTES", ge=1)

    # Administrator bootstrap account and its username/password login path
    admin_username: str = env_field("admin", "ADMIN_USERNAME", min_length=1)
    admin_password: str = env_field("admin", "ADMIN_PASSWORD", min_length=1)
    admin_email: str = env_field("admin@jobportal.com", "ADMIN_EMAIL")
    admin_name: str = env_field("System Administrator", "ADMIN_NAME")

    require_email_verification: bool = env_field(
        False,
        "REQUIRE_EMAIL_VERIFICATION",
        description="Create signups unverified and send a verification code instead of a token",
    )
    client_url: str = env_field("http://localhost:8000", "CLIENT_URL")
    email_from_address: str = env_field("noreply@jobportal.com", "EMAIL_FROM_ADDRESS")
    email_from_name: str = env_field("Job Portal", "EMAIL_FROM_NAME")

    uploads_dir: str = env_field("uploads", "UPLOADS_DIR")
    max_cv_bytes: int = env_field(5 * 1024 * 1024, "MAX_CV_BYTES", ge=1)

    cors_allow_origins: list[str] = env_field([], "CORS_ALLOW_ORIGINS")
    build_sha: str = env_field("dev", "BUILD_SHA")
    test_mode: bool = env_field(
        False,
        "TEST_MODE",
        description="Allow runtime resets between test cases",
    )

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("client_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("jwt_secret", mode="before")
    @classmethod
    def _ensure_jwt_secret(cls, value: str | None) -> str:
        if value:
            return value
        # Tokens signed with a generated secret do not survive a restart
        logger.warning(
            "jwt_secret_generated",
            message="JWT_SECRET is not set; generated a process-local signing secret",
        )
        return secrets.token_urlsafe(64)


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
