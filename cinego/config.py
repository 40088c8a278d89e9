"""
Application configuration management
"""

from datetime import timedelta
from decimal import Decimal
from typing import Annotated, List, Optional
from pydantic_settings import BaseSettings, NoDecode
from pydantic import field_validator


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "CineGo"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    DEBUG: bool = False  # Default to production-safe
    API_PREFIX: str = "/api/v1"
    FRONTEND_URL: str = "http://localhost:5173"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str  # Must be provided via environment

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if v.startswith('postgresql://'):
            v = v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 40
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ECHO: bool = False

    # Identity provider (tokens are issued externally, we only verify them)
    IDENTITY_JWT_SECRET: str  # Must be provided via environment
    IDENTITY_JWT_ALGORITHM: str = "HS256"
    IDENTITY_JWT_AUDIENCE: Optional[str] = None
    ADMIN_ROLE: str = "admin"
    OWNER_EMAILS: Annotated[List[str], NoDecode] = []

    @field_validator('IDENTITY_JWT_SECRET')
    @classmethod
    def validate_identity_secret(cls, v: str) -> str:
        if not v:
            raise ValueError("IDENTITY_JWT_SECRET must be set")
        return v

    # Payment
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    PAYMENT_CURRENCY: str = "usd"
    BASE_CURRENCY: str = "inr"
    # Base-currency units per one payment-currency unit (INR -> USD)
    BASE_TO_PAYMENT_RATE: Decimal = Decimal("86")

    @field_validator('BASE_TO_PAYMENT_RATE')
    @classmethod
    def validate_rate(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("BASE_TO_PAYMENT_RATE must be positive")
        return v

    # Booking
    SEAT_HOLD_MINUTES: int = 10
    MAX_SEATS_PER_BOOKING: int = 10
    SEAT_CLAIM_MAX_ATTEMPTS: int = 3

    @field_validator('SEAT_HOLD_MINUTES', 'SEAT_CLAIM_MAX_ATTEMPTS', 'JOB_LEASE_SECONDS')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    # Background jobs
    RUN_JOB_WORKER: bool = True
    JOB_POLL_INTERVAL_SECONDS: float = 5.0
    JOB_BATCH_SIZE: int = 50
    # A running job whose worker has been silent this long is picked up again
    JOB_LEASE_SECONDS: int = 300
    RETENTION_MONTHS: int = 6
    CLEANUP_MONTHS: Annotated[List[int], NoDecode] = [1, 7]

    # Email
    SENDGRID_API_KEY: str = ""
    FROM_EMAIL: str = "noreply@cinego.app"
    FROM_NAME: str = "CineGo"
    # Show times in emails and search keywords like "today" use this zone
    DISPLAY_TIMEZONE: str = "Asia/Kolkata"

    # Monitoring
    PROMETHEUS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("OWNER_EMAILS", mode="before")
    def parse_owner_emails(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        return [email.strip().lower() for email in v if email and email.strip()]

    @field_validator("CLEANUP_MONTHS", mode="before")
    def parse_cleanup_months(cls, v):
        if isinstance(v, str):
            v = [int(month) for month in v.split(",") if month.strip()]
        if not v or any(month < 1 or month > 12 for month in v):
            raise ValueError("CLEANUP_MONTHS must list months between 1 and 12")
        return sorted(v)

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def is_testing(self) -> bool:
        return self.APP_ENV == "testing"

    @property
    def hold_window(self) -> timedelta:
        return timedelta(minutes=self.SEAT_HOLD_MINUTES)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Create global settings instance
settings = Settings()
