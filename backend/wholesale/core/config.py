"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Wholesale Hub API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production|test)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "postgresql://localhost:5432/wholesale"
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_echo: bool = False

    # Redis (arq worker)
    redis_url: Optional[RedisDsn] = None

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:5000", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Zoho credentials (sync disabled without these)
    zoho_client_id: Optional[str] = None
    zoho_client_secret: Optional[str] = None
    zoho_refresh_token: Optional[str] = None
    zoho_organization_id: Optional[str] = None
    zoho_accounts_url: str = "https://accounts.zoho.com/oauth/v2/token"
    zoho_inventory_url: str = "https://www.zohoapis.com/inventory/v1"
    zoho_books_url: str = "https://www.zohoapis.com/books/v3"

    # Admin API (X-Admin-Key header; admin routes are disabled when unset)
    admin_api_key: Optional[str] = None

    # Inbound webhooks
    zoho_webhook_secret: Optional[str] = None
    webhook_idempotency_max_entries: int = 10_000
    webhook_idempotency_ttl_seconds: int = 24 * 60 * 60

    # Remote client retry policy
    zoho_max_attempts: int = 3
    zoho_backoff_base_seconds: float = 2.0
    zoho_backoff_cap_seconds: float = 300.0
    zoho_token_refresh_margin_seconds: int = 60
    zoho_http_timeout_seconds: float = 30.0

    # Reconciler
    zoho_page_size: int = 200
    incremental_stop_after_older: int = 5
    sync_error_message_limit: int = 100

    # Image cache
    image_cache_dir: str = "product-images"
    image_queue_delay_seconds: float = 0.5

    # Job queue
    job_max_attempts: int = 3

    # Scheduler
    webhook_mode: bool = True
    incremental_sync_hour: int = 3
    full_sync_weekday: int = 6  # Sunday
    full_sync_hour: int = 2
    customer_sync_interval_minutes: int = 60
    customer_recheck_minutes: int = 60

    # Alerts
    resend_api_key: Optional[str] = None
    alert_email: Optional[str] = None
    alert_from_email: str = "Wholesale Hub Alerts <alerts@wholesalehub.dev>"
    alert_cooldown_seconds: int = 300

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"

    @property
    def zoho_configured(self) -> bool:
        """True when every credential needed for a token refresh is present."""
        return all([
            self.zoho_client_id,
            self.zoho_client_secret,
            self.zoho_refresh_token,
            self.zoho_organization_id,
        ])


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
