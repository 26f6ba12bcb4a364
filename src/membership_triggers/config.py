"""Settings for the trigger overseer.

Configuration is loaded from:
- environment variables prefixed with `MEMBERSHIP_TRIGGERS_`
- and a local `.env` file (if present)

Pydantic-settings supports overriding the env file in tests via
`OverseerSettings(_env_file=path_to_env)`.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OverseerSettings(BaseSettings):
    """Settings for marker bookkeeping, retries and logging."""

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )

    marker_root: str = Field(
        default="/autoscaling",
        description="Coordination-service path under which node markers are kept",
    )
    marker_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per marker operation before giving up on transient errors",
    )
    marker_retry_backoff_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Linear backoff step between marker operation retries",
    )

    follower_buffer_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description=(
            "Membership changes seen while not leader are routed on acquisition "
            "only if detected within this many seconds"
        ),
    )

    coordination_root: Path | None = Field(
        default=None,
        description=(
            "Directory backing a file-based coordination client. "
            "When unset, an in-memory client is used."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="MEMBERSHIP_TRIGGERS_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("marker_root")
    @classmethod
    def _normalize_marker_root(cls, value: str) -> str:
        root = "/" + value.strip().strip("/")
        if root == "/":
            raise ValueError("marker_root must not be the coordination root")
        return root
