"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from irrigation_app.utils.secure_config import SecureConfig


class Settings(BaseModel):
    dsn: Optional[str] = None
    notify_channel: str = "irrigation_changes"
    pool_min_size: int = Field(1, ge=1)
    pool_max_size: int = Field(10, ge=1)
    pool_timeout: float = 5.0
    statement_timeout: str = "30s"
    water_volume: float = 2_500_000.0
    display_tz: str = "Asia/Jakarta"

    @field_validator("notify_channel")
    @classmethod
    def _plain_identifier(cls, v: str) -> str:  # noqa: N805
        # LISTEN takes an identifier, keep it unquoted-safe
        if not v.replace("_", "").isalnum():
            raise ValueError(f"invalid notify channel name: {v!r}")
        return v

    @classmethod
    def from_env(cls, secure_config: Optional[SecureConfig] = None) -> "Settings":
        """Build settings from IRRIGATION_* variables; the DSN may come from the encrypted file."""
        env = os.environ
        dsn = env.get("IRRIGATION_DSN")
        if not dsn and secure_config is not None:
            dsn = secure_config.get_secret("IRRIGATION_DSN")

        return cls(
            dsn=dsn,
            notify_channel=env.get("IRRIGATION_NOTIFY_CHANNEL", "irrigation_changes"),
            pool_min_size=int(env.get("IRRIGATION_POOL_MIN", "1")),
            pool_max_size=int(env.get("IRRIGATION_POOL_MAX", "10")),
            pool_timeout=float(env.get("IRRIGATION_POOL_TIMEOUT", "5.0")),
            statement_timeout=env.get("IRRIGATION_STATEMENT_TIMEOUT", "30s"),
            water_volume=float(env.get("IRRIGATION_WATER_VOLUME", "2500000")),
            display_tz=env.get("IRRIGATION_DISPLAY_TZ", "Asia/Jakarta"),
        )

    def require_dsn(self) -> str:
        if not self.dsn:
            raise RuntimeError("IRRIGATION_DSN is not set in environment or secure config")
        return self.dsn
