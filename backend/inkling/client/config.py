"""
Inkling: Client Configuration
=============================

Pydantic Settings for the client, read from INKLING_* environment variables
(or .env). Kept apart from the server settings so the CLI never needs a
provider API key to start.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):

    # Point this at an https:// URL for anything beyond localhost
    server_url: str = Field(default="http://127.0.0.1:3001")

    # Upper bound on one relay call; the request resolves to an error result after it
    request_timeout: float = Field(default=30.0, gt=0, le=600)
    verify_tls: bool = Field(default=True)

    # ── Camera ────────────────────────────────────────────────────────────
    # Device index of the rear/"environment" camera, if the machine has one.
    # When unset or unavailable the fallback device is used without complaint.
    camera_index: Optional[int] = Field(default=None, ge=0)
    fallback_camera_index: int = Field(default=0, ge=0)
    jpeg_quality: float = Field(default=0.9, gt=0, le=1)
    # Seconds to wait for the view surface to mount before giving up on live view
    bind_timeout: float = Field(default=2.0, gt=0, le=30)

    log_level: str = Field(default="WARNING")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = SettingsConfigDict(
        env_prefix="INKLING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


client_settings = ClientSettings()
