"""
Configuration settings for the billing service
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,  # Allow both field name and alias
        extra="ignore",
    )

    # Core authentication and security
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")

    # Stripe billing configuration
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_price_monthly: Optional[str] = Field(default=None, alias="STRIPE_PRICE_MONTHLY")
    stripe_price_yearly: Optional[str] = Field(default=None, alias="STRIPE_PRICE_YEARLY")
    stripe_success_url: Optional[str] = Field(default=None, alias="STRIPE_SUCCESS_URL")
    stripe_cancel_url: Optional[str] = Field(default=None, alias="STRIPE_CANCEL_URL")
    stripe_portal_return_url: Optional[str] = Field(default=None, alias="STRIPE_PORTAL_RETURN_URL")
    stripe_timeout_seconds: float = Field(default=10.0, alias="STRIPE_TIMEOUT_SECONDS")

    # Trial and checkout policy
    # Granted trials always fall within [0, 14] days
    default_trial_days: int = Field(default=14, ge=0, le=14, alias="DEFAULT_TRIAL_DAYS")
    checkout_session_ttl_hours: int = Field(default=24, alias="CHECKOUT_SESSION_TTL_HOURS")

    # Infrastructure configuration
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./billing.db", alias="DATABASE_URL")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    # Render.com deployment configuration
    render: Optional[str] = Field(default=None, alias="RENDER")
    render_external_url: Optional[str] = Field(default=None, alias="RENDER_EXTERNAL_URL")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")

    def price_ids(self) -> dict:
        """Plan value -> Stripe price id; entries are None when unset."""
        return {
            "monthly": self.stripe_price_monthly,
            "yearly": self.stripe_price_yearly,
        }

    @property
    def success_url(self) -> str:
        if self.stripe_success_url:
            return self.stripe_success_url
        return f"{self.frontend_url}/billing/success?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def cancel_url(self) -> str:
        return self.stripe_cancel_url or f"{self.frontend_url}/billing/cancel"

    @property
    def portal_return_url(self) -> str:
        return self.stripe_portal_return_url or f"{self.frontend_url}/settings"


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.render) or bool(settings.env and settings.env.lower() == "production")
