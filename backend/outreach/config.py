"""Application configuration."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://outreach:outreach123@db:5432/outreach"

    # External APIs
    SIGNALHIRE_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None

    # LLM models
    SCORER_MODEL: str = "claude-3-5-haiku-20241022"
    ENRICHER_MODEL: str = "claude-sonnet-4-20250514"

    # Contact enrichment quota
    DAILY_CONTACT_LIMIT: int = 150
    CONTACT_LOOKUP_DELAY_SECONDS: float = 0.2  # SignalHire allows ~600 requests/minute

    # Prospecting
    MAX_PROSPECTS_PER_COMPANY: int = 20
    AUTO_SELECT_PER_COMPANY: int = 3
    SMALL_COMPANY_THRESHOLD: int = 50
    DEFAULT_EMPLOYEE_COUNT: int = 100

    # Company enrichment retries
    MAX_ENRICHMENT_ATTEMPTS: int = 3

    # Scheduler
    ENABLE_SCHEDULER: bool = True
    RETRY_SWEEP_SCHEDULE: str = "*/30 * * * *"  # every 30 minutes
    STALE_TASK_MINUTES: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
