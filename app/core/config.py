"""
Application configuration management.

This module handles all configuration loading from environment variables,
provides validation, and sets up proper defaults for different environments.
"""

import warnings
from datetime import UTC, date, datetime
from functools import lru_cache
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    app_name: str = "Sports Event Registration API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"  # nosec: B104 - Intentional for containerized deployment
    port: int = 8000

    # Logging
    log_dir: str = "logs"
    log_to_file: bool = True

    # Database
    database_url: str | None = None  # Full URL override (tests use sqlite)
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = "changeme"
    db_name: str = "sportsreg_db"

    # Database Connection Pool Settings
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800
    db_pool_pre_ping: bool = True
    db_connect_timeout: int = 10
    db_read_timeout: int = 30
    db_write_timeout: int = 30

    # JWT Authentication
    jwt_secret_key: str = "your-secret-key-change-this-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 7 * 24 * 60  # 7 days

    # Payment gateway (Razorpay orders API)
    razorpay_key_id: str = "rzp_test_key"
    razorpay_key_secret: str = "rzp_test_secret"
    razorpay_base_url: str = "https://api.razorpay.com/v1"
    razorpay_timeout_seconds: float = 10.0
    default_currency: str = "INR"

    # Email (SMTP). Without smtp_host, emails are logged to console instead.
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = False
    smtp_start_tls: bool = True
    smtp_timeout_seconds: float = 30.0
    mail_from: str = "noreply@example.com"
    mail_from_name: str = "Sports Events"
    admin_notification_emails: str = ""  # Comma separated
    email_retry_attempts: int = 3  # Including the first try
    email_retry_min_seconds: int = 1  # Backoff factor
    email_retry_max_seconds: int = 60

    # Celery (email delivery queue)
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    email_queue: str = "email_queue"
    celery_task_always_eager: bool = False  # Run tasks in-process, no broker

    # File Upload Configuration
    max_file_size_mb: int = 5
    allowed_image_extensions: list = [".jpg", ".jpeg", ".png", ".webp", ".pdf"]
    use_gcs: bool = True
    gcs_bucket_name: str = "sportsreg-uploads"
    gcs_project_id: str | None = None

    # Retention jobs
    scheduler_enabled: bool = True
    scheduler_timezone: str = "Asia/Kolkata"
    event_cleanup_grace_days: int = 1
    payment_retention_days: int = 60
    contact_retention_days: int = 90
    event_status_cron: str = "0 * * * *"  # Hourly
    event_cleanup_cron: str = "0 3 * * *"  # Daily 3:00
    contact_cleanup_cron: str = "0 2 * * *"  # Daily 2:00
    class_cleanup_cron: str = "0 4 * * *"  # Daily 4:00
    payment_cleanup_cron: str = "0 5 * * sun"  # Sundays 5:00

    # CORS
    allowed_origins: list = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]

    @field_validator("jwt_secret_key")
    def validate_jwt_secret(cls, v):
        """Warn if using default secret key."""
        if v == "your-secret-key-change-this-in-production":
            warnings.warn(
                "Using default JWT secret key! This is insecure for production. "
                "Set JWT_SECRET_KEY environment variable to a secure random string. "
                "Generate one with: openssl rand -hex 32",
                UserWarning,
                stacklevel=3,
            )
        return v

    @field_validator("environment")
    def validate_environment(cls, v):
        """Validate environment setting."""
        valid_envs = ["development", "testing", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of: {valid_envs}")
        return v.lower()

    def get_database_url(self) -> str:
        """Return DATABASE_URL if set, else build a MySQL URL with encoded credentials."""
        if self.database_url:
            return self.database_url

        encoded_pwd = quote_plus(self.db_password)  # Not a hardcoded password
        encoded_user = quote_plus(self.db_user)

        return (
            f"mysql+pymysql://{encoded_user}:{encoded_pwd}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"

    @property
    def max_file_size_bytes(self) -> int:
        """Get max individual file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def admin_emails(self) -> list[str]:
        """Operator/admin recipients parsed from the comma separated setting."""
        return [e.strip() for e in self.admin_notification_emails.split(",") if e.strip()]

    def local_today(self, now: datetime | None = None) -> date:
        """Calendar date in ``scheduler_timezone``; event and membership dates are local."""
        now = now or datetime.now(UTC)
        return now.astimezone(ZoneInfo(self.scheduler_timezone)).date()

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration object
    """
    return Settings()


# Export commonly used settings
settings = get_settings()
