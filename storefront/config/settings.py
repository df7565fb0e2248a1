"""
Configuration settings for the storefront checkout backend.
Handles environment variables and gateway credentials.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CASHFREE_SANDBOX_URL = "https://sandbox.cashfree.com/pg"
CASHFREE_PRODUCTION_URL = "https://api.cashfree.com/pg"


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env file
    )

    # Application
    APP_NAME: str = "storefront-checkout"
    APP_VERSION: str = "1.0.0"
    NODE_ENV: str = "development"
    DEFAULT_CURRENCY: str = "INR"

    # Database
    DATABASE_URL: str = "sqlite:///./storefront.db"

    # Public URLs
    PUBLIC_BASE_URL: str = "http://localhost:3000"
    # When set, the checkout result view verifies payments over HTTP
    ORDER_API_BASE_URL: Optional[str] = None

    # Cashfree
    CASHFREE_ENVIRONMENT: str = "sandbox"
    CASHFREE_APP_ID: Optional[str] = None
    CASHFREE_SECRET_KEY: Optional[str] = None
    CASHFREE_API_VERSION: str = "2022-09-01"
    CASHFREE_TIMEOUT_SECONDS: float = 30.0

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_PUBLISHABLE_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    # JWT Settings
    JWT_SECRET: str = "dev-secret-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    PASSWORD_RESET_EXPIRE_MINUTES: int = 30

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    @field_validator("CASHFREE_ENVIRONMENT")
    @classmethod
    def normalize_cashfree_environment(cls, v: str) -> str:
        v = (v or "sandbox").strip().lower()
        if v not in ("sandbox", "production"):
            raise ValueError("CASHFREE_ENVIRONMENT must be 'sandbox' or 'production'")
        return v

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def cashfree_base_url(self) -> str:
        if self.CASHFREE_ENVIRONMENT == "production":
            return CASHFREE_PRODUCTION_URL
        return CASHFREE_SANDBOX_URL

    @property
    def is_production(self) -> bool:
        return self.NODE_ENV == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def validate_settings(settings: Settings) -> None:
    """Validate critical settings"""
    issues = []

    if settings.is_production:
        if settings.JWT_SECRET == "dev-secret-change-in-production":
            issues.append("JWT_SECRET must be set in production")
        if settings.STRIPE_SECRET_KEY and not settings.STRIPE_WEBHOOK_SECRET:
            issues.append("STRIPE_WEBHOOK_SECRET must be set when Stripe is enabled")

    if issues:
        raise ValueError(f"Configuration issues: {', '.join(issues)}")
