"""
Pipeline settings.

Environment-driven configuration, loaded once per process.
"""

import functools

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration read from environment variables (or a .env file)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./crm_whatsapp.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Webhook
    WHATSAPP_VERIFY_TOKEN: str = ""
    WHATSAPP_APP_SECRET: str = ""

    # Provider
    WHATSAPP_PROVIDER: str = "meta"  # meta, stub
    WHATSAPP_ENCRYPTION_KEY: str | None = None
    GRAPH_API_VERSION: str = "v21.0"
    PROVIDER_TIMEOUT_SECONDS: float = 15.0

    # Events for dashboard consumers
    EVENTS_ENABLED: bool = True
    EVENTS_STREAM: str = "events:whatsapp"

    LOG_LEVEL: str = "INFO"


@functools.lru_cache()
def get_settings() -> Settings:
    """Get settings (cached)."""
    return Settings()
