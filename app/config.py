# config.py
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import ValidationError

# Values that must never sign or verify real tokens
PLACEHOLDER_SECRETS = ("change-me", "changeme", "secret")

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    @property
    def patched_database_url(self):
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url
    database_url: str = "sqlite:///./etsmart.db"

    # Identity provider (Supabase) - access tokens are HS256 JWTs
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_price_smart: Optional[str] = None
    stripe_price_pro: Optional[str] = None
    stripe_price_scale: Optional[str] = None
    stripe_lookup_timeout_seconds: float = 5.0

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_fallback_model: str = "gpt-4o-mini"

    # Image generation API
    image_api_key: Optional[str] = None
    image_api_base_url: str = "https://api.nanobananaapi.ai/api/v1/nanobanana"
    image_callback_url: Optional[str] = None

    cron_secret: Optional[str] = None
    site_url: str = "http://localhost:3000"
    cors_origins: List[str] = ["http://localhost:3000", "https://etsmart.app"]

    billing_period_days: int = 30
    enable_scheduler: bool = True
    enable_debug_endpoints: bool = False

    def validate(self):
        if not self.supabase_jwt_secret.strip() or self.supabase_jwt_secret in PLACEHOLDER_SECRETS:
            raise ValueError("SUPABASE_JWT_SECRET must be set to the project's JWT secret")
        if self.billing_period_days <= 0:
            raise ValueError("billing_period_days must be positive")
        if self.stripe_lookup_timeout_seconds <= 0:
            raise ValueError("stripe_lookup_timeout_seconds must be positive")
        if not self.database_url:
            raise ValueError("Missing required config: database_url")

try:
    settings = Settings()
    settings.validate()
except ValidationError as ve:
    print("Config validation failed:", ve)
    raise
