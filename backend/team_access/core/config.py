# backend/team_access/core/config.py

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # Use: development | staging | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # -----------------------------
    # Invitations
    # -----------------------------
    # Bytes of entropy handed to secrets.token_urlsafe for invitation tokens.
    INVITE_TOKEN_BYTES: int = 48

    # -----------------------------
    # Regional access
    # -----------------------------
    # Header the HTTP adapter reads the requested region (ISO country) from.
    REGION_HEADER: str = "X-Region"

    # -----------------------------
    # Member defaults
    # -----------------------------
    DEFAULT_LANGUAGE: str = "en"
    DEFAULT_CURRENCY: str = "USD"

    @property
    def LOG_LEVEL_NAME(self) -> str:
        return (self.LOG_LEVEL or "INFO").strip().upper()

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        if self.LOG_LEVEL_NAME not in _LOG_LEVELS:
            raise ValueError(f"Unsupported LOG_LEVEL={self.LOG_LEVEL!r}. Allowed: {', '.join(sorted(_LOG_LEVELS))}")

        # minimum token entropy
        if self.INVITE_TOKEN_BYTES < 16:
            raise ValueError("INVITE_TOKEN_BYTES must be at least 16.")

        if not (self.REGION_HEADER or "").strip():
            raise ValueError("REGION_HEADER must not be empty.")


settings = Settings()
