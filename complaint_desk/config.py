"""
Complaint Desk - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Ticket Store
    api_url: str = "http://localhost:8000"
    request_timeout: float = 10.0
    max_retries: int = 3

    # Reconciliation cadence (seconds)
    detail_poll_interval: float = 3.0
    dashboard_poll_interval: float = 5.0

    # CLI
    default_page_size: int = 50

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @property
    def API_BASE_URL(self) -> str:
        """Ticket Store base URL without trailing slash"""
        return self.api_url.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
