"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")
    jwt_audience: str = Field(default="authenticated", description="Expected aud claim of access tokens")
    admin_role: str = Field(default="admin", description="Role claim value that grants store administrator access")
    supabase_timeout_seconds: float = Field(default=10.0, gt=0, description="PostgREST request timeout")

    # Stripe
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")
    stripe_max_network_retries: int = Field(default=2, ge=0, description="Retries for failed Stripe API requests")

    # Redis (offline notification mailbox)
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    missed_notification_ttl_seconds: int = Field(
        default=86400, description="Lifetime of a recipient's offline notification mailbox"
    )

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for sending emails")
    email_from_address: str = Field(
        default="Storefront <orders@storefront.example>",
        description="From address for transactional emails",
    )

    # Frontend
    client_url: str = Field(
        default="http://localhost:5173",
        description="Storefront client URL used for checkout redirects and email links",
    )

    # Orders and coupons
    currency: str = Field(default="usd", description="Currency used for checkout sessions")
    loyalty_threshold_cents: int = Field(
        default=20000, description="Pre-discount checkout total above which a loyalty coupon is minted"
    )
    loyalty_coupon_percentage: int = Field(default=10, ge=1, le=100, description="Loyalty coupon discount")
    loyalty_coupon_days: int = Field(default=30, description="Days until a loyalty coupon expires")
    cancellation_fee_percent: int = Field(default=5, ge=0, le=100, description="Fee withheld when cancelling")
    refund_fee_percent: int = Field(default=10, ge=0, le=100, description="Fee withheld on approved refunds")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
