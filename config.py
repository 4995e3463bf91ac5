from __future__ import annotations
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "storefront"

    # Minimum order policy
    MIN_ORDER_QUANTITY: int = 3
    MIN_ORDER_AMOUNT: float = 30.0

    # Referrals
    BONUS_PER_REFERRAL: float = 100.0
    REFERRAL_CODE_LENGTH: int = 8
    REFERRAL_CODE_ATTEMPTS: int = 5

    # Bounds on store round trips, in seconds
    ORDER_TIMEOUT_SECONDS: float = 8.0
    REFERRAL_TIMEOUT_SECONDS: float = 8.0

    # Rate limiting
    ORDER_RATE_LIMIT_MAX_REQUESTS: int = 3
    ORDER_RATE_LIMIT_WINDOW_SECONDS: float = 120.0
    RATE_LIMIT_MAX_REQUESTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0

    # Admin
    ADMIN_TOKEN: str = ""
    ADMIN_LIST_LIMIT: int = 100

    # Email (Resend)
    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    ADMIN_EMAIL: str = "admin@yourdomain.com"
    FROM_EMAIL: str = "noreply@yourdomain.com"
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    NOTIFICATION_MAX_ATTEMPTS: int = 3
    NOTIFICATION_RETRY_DELAY_SECONDS: float = 1.0
    NOTIFICATION_QUEUE_SIZE: int = 1000

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]


settings = Settings()
