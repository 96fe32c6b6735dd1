"""
Runtime settings for the WhatsApp inbox services.

Values come from the environment (or a local .env file).
"""

import functools

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./whatsapp_inbox.db"

    # JWT verification for tenant-facing requests (tokens are issued elsewhere)
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"

    # Which bridge client to use: "bridge" (HTTP) or "stub" (local development)
    WHATSAPP_PROVIDER: str = "bridge"
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_STATUS_TIMEOUT_SECONDS: float = 5.0

    # Any of these modules grants access to the inbox
    WHATSAPP_MODULE_IDS: list[str] = ["whatsapp", "marketing"]

    LOG_LEVEL: str = "INFO"


@functools.lru_cache()
def get_settings() -> Settings:
    """Get settings (cached)."""
    return Settings()
