"""
Configuration settings for the application
"""
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Normalized plan types
PLAN_FREE = "free"
PLAN_PREMIUM_MONTHLY = "premium_monthly"
PLAN_PREMIUM_YEARLY = "premium_yearly"
PLAN_PREMIUM_PRO = "premium_pro"
PLAN_EXCLUSIVE_MONTHLY = "exclusive_monthly"
PLAN_VIP = "vip"

PLAN_TYPES = (
    PLAN_FREE,
    PLAN_PREMIUM_MONTHLY,
    PLAN_PREMIUM_YEARLY,
    PLAN_PREMIUM_PRO,
    PLAN_EXCLUSIVE_MONTHLY,
    PLAN_VIP,
)

# Every paid plan unlocks premium features
PREMIUM_PLAN_TYPES = frozenset(PLAN_TYPES) - {PLAN_FREE}


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Core authentication and security
    jwt_secret: Optional[str] = Field(default=None, alias="JWT_SECRET")
    admin_emails: Optional[str] = Field(default=None, alias="ADMIN_EMAILS")

    # Generative AI provider
    ai_provider: str = Field(default="gemini", alias="AI_PROVIDER")
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    ai_request_timeout: float = Field(default=30.0, alias="AI_REQUEST_TIMEOUT")

    # Stripe billing configuration
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")

    # Infrastructure configuration
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./mystic_star.db", alias="DATABASE_URL")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    # Frontend configuration
    app_url: str = Field(default="http://localhost:3001", alias="APP_URL")
    allowed_origins: Optional[str] = Field(default=None, alias="ALLOWED_ORIGINS")

    # Render.com deployment configuration
    render: Optional[str] = Field(default=None, alias="RENDER")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")

    @property
    def allowed_origin_list(self) -> List[str]:
        """CORS allow-list; falls back to APP_URL when ALLOWED_ORIGINS is empty"""
        if not self.allowed_origins:
            return [self.app_url]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def admin_email_list(self) -> List[str]:
        if not self.admin_emails:
            return []
        return [email.strip().lower() for email in self.admin_emails.split(",") if email.strip()]


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.render) or (settings.env is not None and settings.env.lower() == "production")
