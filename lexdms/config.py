import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/lexdms"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    celery_task_always_eager: bool = _env_bool("CELERY_TASK_ALWAYS_EAGER")

    # Retention
    retention_default_years: int = int(os.getenv("RETENTION_DEFAULT_YEARS", "7"))
    retention_default_months: int = int(os.getenv("RETENTION_DEFAULT_MONTHS", "0"))
    retention_default_days: int = int(os.getenv("RETENTION_DEFAULT_DAYS", "0"))
    retention_sweep_interval_hours: int = int(
        os.getenv("RETENTION_SWEEP_INTERVAL_HOURS", "24")
    )
    retention_sweep_startup_delay_seconds: int = int(
        os.getenv("RETENTION_SWEEP_STARTUP_DELAY_SECONDS", "120")
    )
    retention_sweep_time_budget_seconds: int = int(
        os.getenv("RETENTION_SWEEP_TIME_BUDGET_SECONDS", "3000")
    )
    archive_delete_after_years: int = int(os.getenv("ARCHIVE_DELETE_AFTER_YEARS", "1"))

    # Document-type classifier
    classifier_min_confidence: float = float(
        os.getenv("CLASSIFIER_MIN_CONFIDENCE", "0.7")
    )

    # Notifications
    notification_email_enabled: bool = _env_bool("NOTIFICATION_EMAIL_ENABLED")

    # S3 / MinIO settings
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "lexdms-documents")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")


settings = Settings()
