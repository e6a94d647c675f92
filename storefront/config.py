"""Storefront configuration."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings for the storefront service."""

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    checkout_currency: str = "brl"
    webhook_tolerance_seconds: int = 300

    # Public base URL used for checkout redirect targets
    public_url: str = "http://localhost:3000"

    # Storage. Empty DATABASE_URL selects the in-memory store.
    database_url: str = ""
    redis_url: str = ""

    # Back-office
    admin_token: str = ""
    low_stock_threshold: int = 5

    # HTTP
    cors_origins: list[str] = ["*"]
    rate_limit_enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def base_url(self) -> str:
        return self.public_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once from the environment)."""
    return Settings()
