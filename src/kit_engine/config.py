"""Configuration for the kit engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings for the kit engine.

    Environment variables:
    - LOG_LEVEL                    (optional)
    - KIT_LOG_FORMAT               (optional, `json` or `text`)
    - KIT_SESSION_TIMEOUT_SECONDS  (optional)
    - KIT_MAX_CONCURRENT_KITS      (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        validation_alias="KIT_LOG_FORMAT",
        description="Log output format",
    )

    session_timeout_seconds: float = Field(
        default=1800.0,
        gt=0,
        validation_alias="KIT_SESSION_TIMEOUT_SECONDS",
        description=(
            "Age after which a session is swept by cleanup_expired_sessions(). "
            "The sweep itself must be scheduled by the caller."
        ),
    )
    max_concurrent_kits: int = Field(
        default=8,
        ge=1,
        validation_alias="KIT_MAX_CONCURRENT_KITS",
        description="Worker threads used by execute_multiple_kits()",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"
