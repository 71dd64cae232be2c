"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    stripe_secret_key: str
    stripe_webhook_secret: str
    admin_password_hash: str
    site_url: str = "http://localhost:5173"
    base_price_cents: int = 100
    currency: str = "usd"
    product_name: str = "PixPeriment Upload"
    storage_bucket: str = "uploads"
    max_image_bytes: int = 5 * 1024 * 1024
    max_caption_length: int = 500
    checkout_expiry_minutes: int = 30
    pending_retention_minutes: int = 60
    admin_session_minutes: int = 30
    reconcile_lookback_hours: int = 24
    materialize_max_attempts: int = 5
    rate_limit_backend: str = "supabase"
    resend_api_key: str | None = None
    email_from: str = "PixPeriment <noreply@pixperiment.com>"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def normalize_site_url(raw: str) -> str:
    """Strip trailing slashes so redirect URLs can be joined safely."""
    cleaned = raw.strip()
    while cleaned.endswith("/"):
        cleaned = cleaned[:-1]
    return cleaned
