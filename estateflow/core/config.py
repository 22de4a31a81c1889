from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_allowed_origins(v: str) -> List[str]:
    """Parse comma-separated origins string; strip whitespace; keep non-empty."""
    if not v or not v.strip():
        return []
    return [o.strip() for o in v.split(",") if o.strip()]


DEV_JWT_SECRET = "dev_jwt_secret_change_in_production_0123456789"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore")

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://postgres:postgres@db:5432/estateflow"
    RUN_DATA_MIGRATIONS_ON_STARTUP: bool = True

    # Frontend / CORS
    FRONTEND_URL: str = "http://localhost:5173"
    ALLOWED_ORIGINS_EXTRA: str = ""

    # Auth
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ISSUER: str = "estateflow"
    JWT_AUDIENCE: str = "estateflow"
    JWT_EXPIRE_HOURS: int = 24
    MAGIC_LINK_EXPIRE_MINUTES: int = 15
    RATE_LIMIT_ENABLED: bool = True
    # Only enable behind a proxy that overwrites X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_PRICE_MONTHLY: Optional[str] = None
    STRIPE_PRICE_YEARLY: Optional[str] = None
    STRIPE_PRICE_SEAT: Optional[str] = None

    # Email (Resend)
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "noreply@estateflow.com"

    # E-signature (Yousign)
    YOUSIGN_API_KEY: Optional[str] = None
    YOUSIGN_API_URL: str = "https://api-sandbox.yousign.app/v3"

    # Uploads
    UPLOAD_PATH: str = "uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"

    @property
    def stripe_configured(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY and self.STRIPE_SECRET_KEY.startswith("sk_"))

    @property
    def seat_billing_configured(self) -> bool:
        """Seat sync needs both an API key and the per-seat price."""
        return self.stripe_configured and bool(self.STRIPE_PRICE_SEAT)

    def get_allowed_origins(self) -> List[str]:
        """Return CORS allowed origins: FRONTEND_URL + ALLOWED_ORIGINS_EXTRA."""
        return [self.FRONTEND_URL.rstrip("/")] + _parse_allowed_origins(self.ALLOWED_ORIGINS_EXTRA)

    def validate_for_startup(self) -> None:
        """Refuse to boot a production process with development secrets."""
        if not self.is_production:
            return
        missing = []
        if not self.JWT_SECRET or self.JWT_SECRET == DEV_JWT_SECRET or len(self.JWT_SECRET) < 32:
            missing.append("JWT_SECRET")
        if self.STRIPE_SECRET_KEY and not self.STRIPE_WEBHOOK_SECRET:
            missing.append("STRIPE_WEBHOOK_SECRET")
        if missing:
            raise RuntimeError(f"Missing or insecure production settings: {', '.join(missing)}")


@lru_cache
def get_settings() -> Settings:
    return Settings()
