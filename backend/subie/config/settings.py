"""
Application Settings for Subie

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Literal, Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Values shipped in .env.example that mean "not configured"
PLACEHOLDER_CREDENTIALS = {
    "",
    "your_revenuecat_public_api_key",
    "your_revenuecat_api_key",
    "your_flutterwave_public_key",
    "your_flutterwave_secret_key",
}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    ENTITLEMENT_PROVIDER picks the single billing source that owns the
    user's plan for this deployment:
    - revenuecat: store-style billing (offerings, receipts)
    - flutterwave: card-style billing (hosted payment link)
    - none: every user stays on the free plan
    """

    # Supabase Configuration (auth tokens are issued by Supabase)
    supabase_url: str = "http://localhost:54321"
    supabase_jwt_secret: Optional[str] = None
    supabase_password: Optional[str] = None

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    frontend_url: str = "http://localhost:3000"
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Navigation targets used by the access guards
    login_route: str = "/login"
    access_denied_route: str = "/subscriptions"

    # Entitlement source of truth
    entitlement_provider: Literal["revenuecat", "flutterwave", "none"] = "revenuecat"
    provider_timeout_seconds: float = 10.0

    # RevenueCat Configuration
    revenuecat_api_key: Optional[str] = None
    revenuecat_api_url: str = "https://api.revenuecat.com/v1"
    revenuecat_platform: str = "stripe"

    # Flutterwave Configuration
    flutterwave_public_key: Optional[str] = None
    flutterwave_secret_key: Optional[str] = None
    flutterwave_api_url: str = "https://api.flutterwave.com/v3"
    flutterwave_redirect_url: str = "http://localhost:3000/billing"
    flutterwave_currency: str = "USD"

    # Reminder defaults
    default_reminder_days: int = 3
    upcoming_window_days: int = 30

    # Database Configuration (SQLModel/SQLAlchemy)
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def normalize_provider_credentials(self) -> "Settings":
        """Treat placeholder provider keys as missing."""
        if self.revenuecat_api_key in PLACEHOLDER_CREDENTIALS:
            self.revenuecat_api_key = None
        if self.flutterwave_public_key in PLACEHOLDER_CREDENTIALS:
            self.flutterwave_public_key = None
        if self.flutterwave_secret_key in PLACEHOLDER_CREDENTIALS:
            self.flutterwave_secret_key = None
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
