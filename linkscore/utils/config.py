"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import List, Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # DataForSEO (required to run analyses, not to boot the API)
    DATAFORSEO_LOGIN: Optional[str] = None
    DATAFORSEO_PASSWORD: Optional[str] = None

    # Storage
    DATABASE_URL: Optional[str] = None

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Outbound notification
    WEBHOOK_URLS: str = ""
    WEBHOOK_TIMEOUT_SECONDS: float = 15.0

    # Domain blocklist (published Google Sheet as CSV)
    BLOCKLIST_CSV_URL: Optional[str] = None
    BLOCKLIST_TTL_SECONDS: int = 300

    # Competitor discovery
    MAX_COMPETITORS: int = 5
    COMPETITOR_CONCURRENCY: int = 3
    SERP_DEPTH: int = 10
    COMPETITOR_DOMAIN_SUFFIX: str = ".com.au"

    # Backlink retrieval
    BACKLINK_LIMIT: int = 1000
    API_TIMEOUT: int = 60

    # Stuck-job reaper
    STUCK_JOB_MINUTES: int = 15
    LONG_QUERY_MINUTES: int = 10
    REAPER_INTERVAL_SECONDS: int = 300
    QUERY_KILL_INTERVAL_SECONDS: int = 600
    ENABLE_REAPER_SCHEDULE: bool = True

    # Admin endpoints (unset = open, for local development only)
    ADMIN_API_KEY: Optional[str] = None

    # Submission rate limits (per client IP)
    SUBMISSIONS_PER_MINUTE: int = 2
    SUBMISSIONS_PER_HOUR: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    @property
    def webhook_urls(self) -> List[str]:
        """Configured webhook endpoints, in order."""
        return [url.strip() for url in self.WEBHOOK_URLS.split(",") if url.strip()]

    @property
    def has_dataforseo_credentials(self) -> bool:
        return bool(self.DATAFORSEO_LOGIN and self.DATAFORSEO_PASSWORD)


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
