"""
Inkling: Server Configuration
=============================

What:  Centralized configuration for the transcription server using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every server module that needs configuration values.

The client half has its own settings object (inkling.client.config) so a
machine running only the CLI never needs provider API keys.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Engine names double as the `engine` field of GET /health
ENGINE_CLAUDE = "claude-vision"
ENGINE_GEMINI = "gemini-vision"


class Settings(BaseSettings):
    """
    Server settings loaded from environment variables.

    Every value has a development default except the provider API key,
    which is checked by validate_required_for_production() at startup.
    """

    # ── Engine Selection ──────────────────────────────────────────────────
    ocr_engine: str = Field(
        default=ENGINE_CLAUDE,
        description="Hosted vision model backing POST /api/ocr",
    )

    @field_validator("ocr_engine")
    @classmethod
    def validate_ocr_engine(cls, v: str) -> str:
        valid = {ENGINE_CLAUDE, ENGINE_GEMINI}
        lowered = v.strip().lower()
        if lowered not in valid:
            raise ValueError(f"Invalid ocr_engine '{v}'. Must be one of: {sorted(valid)}")
        return lowered

    # ── Anthropic Claude ──────────────────────────────────────────────────
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")
    claude_max_tokens: int = Field(default=2048, ge=256, le=8192)

    # ── Google Gemini ─────────────────────────────────────────────────────
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    gemini_model: str = Field(default="gemini-1.5-flash")

    # ── Uploads ───────────────────────────────────────────────────────────
    # 50 MiB, the hard ceiling of the multipart endpoint
    max_upload_bytes: int = Field(default=52_428_800, ge=1_048_576, le=52_428_800)

    # ── Upstream Call Policy ──────────────────────────────────────────────
    # Seconds a single provider call may take before it counts as a failure
    upstream_timeout: float = Field(default=60.0, gt=0, le=300)
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: int = Field(default=2, ge=1, le=30)
    retry_max_wait: int = Field(default=10, ge=5, le=120)

    # ── Circuit Breaker ───────────────────────────────────────────────────
    cb_failure_threshold: int = Field(default=5, ge=2, le=20)
    cb_recovery_timeout: int = Field(default=60, ge=10, le=300)

    # ── HTTP Server ───────────────────────────────────────────────────────
    cors_origins: str = Field(default="*")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001, ge=1024, le=65535)
    # TLS material is used only if both files already exist
    ssl_certfile: Optional[str] = Field(default=None)
    ssl_keyfile: Optional[str] = Field(default=None)

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def validate_required_for_production(self) -> None:
        """
        Checks that the API key for the selected engine is configured.

        Called during app startup (lifespan). Raises ValueError with guidance;
        the caller logs it and keeps serving so /health stays reachable.
        """
        errors = []
        if self.ocr_engine == ENGINE_CLAUDE and not self.anthropic_api_key:
            errors.append(
                "ANTHROPIC_API_KEY is not set. "
                "Create a key at https://console.anthropic.com/settings/keys"
            )
        if self.ocr_engine == ENGINE_GEMINI and not self.gemini_api_key:
            errors.append(
                "GEMINI_API_KEY is not set. "
                "Get a key at https://aistudio.google.com/app/apikey"
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


settings = Settings()
