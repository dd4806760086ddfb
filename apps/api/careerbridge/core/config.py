"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version
    VERSION: str = "0.3.0"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./careerbridge.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 24

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (checkout redirects, notification links)
    FRONTEND_URL: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # Translation (Google Translate v2)
    GOOGLE_TRANSLATE_API_KEY: str = ""

    # Object storage (S3-compatible)
    S3_BUCKET: str = ""
    S3_REGION: str = "ap-northeast-1"
    S3_ENDPOINT_URL: str = ""
    S3_PUBLIC_BASE_URL: str = ""  # e.g. CDN in front of the bucket
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    UPLOAD_MAX_BYTES: int = 10 * 1024 * 1024

    # Email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "CareerBridge <no-reply@careerbridge.jp>"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""

    # Billing
    MESSAGE_CREDIT_COST: int = 10
    CORPORATE_OB_MESSAGE_FEE_JPY: int = 500
    CREDIT_PRICE_JPY_COMPANY: int = 15
    CREDIT_PRICE_JPY_DEFAULT: int = 30

    # Notifications
    NOTIFICATION_TIMEZONE: str = "Asia/Tokyo"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
