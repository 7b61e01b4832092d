"""FunnelSync — Central Configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Meta API ──
    meta_api_version: str = "v21.0"
    meta_base_url: str = "https://graph.facebook.com"
    meta_lookback_months: int = 37

    # ── Google Ads API ──
    google_ads_api_version: str = "v18"
    google_ads_base_url: str = "https://googleads.googleapis.com"
    google_ads_developer_token: str = ""
    google_ads_lookback_months: int = 120

    # ── Credentials ──
    # Fallback bearer tokens when an account's credential_ref is not set in env
    meta_access_token: Optional[str] = None
    google_ads_access_token: Optional[str] = None

    # ── Database ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    refresh_interval_hours: int = 3
    archive_hour: int = 4  # Daily archival + validation at 4 AM UTC

    # ── Sync policy ──
    cache_freshness_hours: float = 3.0
    reporting_lag_days: int = 1  # Vendors finalize a day's numbers after ~24h
    vendor_call_delay_ms: int = 250
    rate_limit_max_attempts: int = 3
    rate_limit_base_delay: float = 2.0  # seconds
    request_timeout_seconds: float = 20.0
    http_timeout_seconds: float = 30.0

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        return "sqlite:///./funnelsync.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
