from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_PREFIXES = ("your_", "your-", "changeme", "replace_me")


def is_configured(value: Optional[str]) -> bool:
    """Return True when a credential holds a real value, not a template placeholder."""
    if not value or not value.strip():
        return False
    return not value.strip().lower().startswith(PLACEHOLDER_PREFIXES)


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "store"
    FRONTEND_URL: str = "http://localhost:5173"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Redis (arq worker + distributed rate limit state)
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Operator auth
    ADMIN_JWT_SECRET: str = "test-jwt-secret"

    # Outbound HTTP
    HTTP_MAX_ATTEMPTS: int = 5
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Fulfillment provider (Printify)
    PRINTIFY_API_URL: str = "https://api.printify.com/v1"
    PRINTIFY_API_TOKEN: Optional[str] = None
    PRINTIFY_SHOP_ID: Optional[str] = None
    PRINTIFY_WEBHOOK_SECRET: Optional[str] = None
    PRINTIFY_PAGE_SIZE: int = 50
    PRINTIFY_SHIPPING_METHOD: int = 1

    # Payment gateway (Stripe)
    STRIPE_API_URL: str = "https://api.stripe.com"
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300
    CHECKOUT_ALLOWED_COUNTRIES: list[str] = ["US", "CA", "GB", "AU"]

    # Pricing
    CURRENCY: str = "usd"
    FREE_SHIPPING_THRESHOLD_CENTS: int = 5000
    FLAT_SHIPPING_CENTS: int = 500
    TAX_RATE: float = 0.08
    DEFAULT_PRICE_CENTS: int = 2999

    # Webhook claim lease
    WEBHOOK_CLAIM_LEASE_MINUTES: int = 15

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @property
    def printify_configured(self) -> bool:
        return is_configured(self.PRINTIFY_API_TOKEN) and is_configured(
            self.PRINTIFY_SHOP_ID
        )

    @property
    def stripe_configured(self) -> bool:
        return is_configured(self.STRIPE_SECRET_KEY)


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
