from functools import lru_cache
import logging
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from metricspulse.core.logger import setup_logger


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, production, test
    API_DOMAIN: str = "http://localhost:8000"
    APP_NAME: str = "MetricsPulse"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = """
MetricsPulse aggregates SaaS metrics (MRR, churn, LTV, active customers) per workspace.

## Key Capabilities

| Area | Description |
|------|-------------|
| **Webhooks** | Verified Stripe event ingestion with idempotency, typed routing and retried metric recalculation. |
| **Metrics** | Daily metric snapshots per workspace, queryable over a rolling window of up to 365 days. |
| **Recalculation** | On-demand recalculation from the connected Stripe account, throttled per workspace. |

## Authentication

Dashboard endpoints require a **Bearer JWT** whose `sub` claim is the user ID owning the workspace.
"""
    DEBUG: bool = False
    LOG_DIR: str = "logs"

    # CORS settings
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # JWT settings
    JWT_SECRET_KEY: str = "another_supersecret_key"
    JWT_ALGORITHM: str = "HS256"

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./metricspulse.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"

    # Redis settings
    REDIS_URL: str = "redis://localhost:6379/0"

    # Stripe settings
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_BASE_URL: str = "https://api.stripe.com"
    STRIPE_TIMEOUT_SECONDS: float = 10.0

    # Webhook settings
    WEBHOOK_SIGNATURE_TOLERANCE_SECONDS: int = 300
    WEBHOOK_MAX_BODY_BYTES: int = 1024 * 1024

    # Idempotency cache settings
    IDEMPOTENCY_BACKEND: Literal["memory", "redis"] = "memory"
    IDEMPOTENCY_WINDOW_SECONDS: int = 24 * 3600
    IDEMPOTENCY_COMPACTION_THRESHOLD: int = 10_000

    # Retry settings
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BACKOFF_BASE_SECONDS: float = 1.0
    RETRY_BUDGET_SECONDS: float = 30.0

    # Recalculation throttle settings
    RECALCULATION_THROTTLE_BACKEND: Literal["memory", "redis"] = "memory"
    RECALCULATION_THROTTLE_SECONDS: int = 5 * 60

    # Metrics calculation settings
    METRICS_SUBSCRIPTION_LIMIT: int = 100
    METRICS_CUSTOMER_LIMIT: int = 1000
    CHURN_BASELINE_RATE: float = 0.05

    # Scheduler settings
    ENABLE_SCHEDULER: bool = False
    SNAPSHOT_CRON_HOUR: int = 2

    # Sentry settings
    SENTRY_DSN: str = ""

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()


def _log_file(name: str) -> str:
    return f"{settings.LOG_DIR}/{name}.log"


# Configure loggers
app_logger = setup_logger(name="app_logger", log_file=_log_file("app"))
database_logger = setup_logger(
    name="database_logger", log_file=_log_file("database"), level=logging.INFO
)
request_logger = setup_logger(
    name="request_logger", log_file=_log_file("requests"), level=logging.INFO
)
auth_logger = setup_logger(
    name="auth_logger", log_file=_log_file("auth"), level=logging.INFO
)
redis_logger = setup_logger(
    name="redis_logger", log_file=_log_file("redis"), level=logging.INFO
)
stripe_logger = setup_logger(
    name="stripe_logger", log_file=_log_file("stripe"), level=logging.INFO
)
webhook_logger = setup_logger(
    name="webhook_logger", log_file=_log_file("webhook"), level=logging.INFO
)
metrics_logger = setup_logger(
    name="metrics_logger", log_file=_log_file("metrics"), level=logging.INFO
)
retry_logger = setup_logger(
    name="retry_logger", log_file=_log_file("retry"), level=logging.INFO
)
scheduler_logger = setup_logger(
    name="scheduler_logger", log_file=_log_file("scheduler"), level=logging.INFO
)
utils_logger = setup_logger(
    name="utils_logger", log_file=_log_file("utils"), level=logging.INFO
)

__all__ = [
    "settings",
    "get_settings",
    "app_logger",
    "database_logger",
    "request_logger",
    "auth_logger",
    "redis_logger",
    "stripe_logger",
    "webhook_logger",
    "metrics_logger",
    "retry_logger",
    "scheduler_logger",
    "utils_logger",
]
