"""
Application configuration
"""
import os
import tempfile
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Repository Scan Core"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./repo_scans.db"

    # Providers
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_API_URL: str = "https://api.github.com"
    GITLAB_TOKEN: Optional[str] = None
    GITLAB_API_URL: str = "https://gitlab.com/api/v4"
    HTTP_TIMEOUT: float = 30.0

    # Scan workers
    SCAN_WORKERS: int = 2
    SCAN_SCRATCH_DIR: str = os.path.join(tempfile.gettempdir(), "repo-scan-core")
    WORKER_POLL_INTERVAL: float = 1.0
    STALE_WORKDIR_SECONDS: int = 6 * 60 * 60

    # Circuit breaker around provider calls
    CIRCUIT_MAX_FAILURES: int = 5
    CIRCUIT_RETRY_ATTEMPTS: int = 3
    CIRCUIT_TIMEOUT_SECONDS: float = 30.0
    CIRCUIT_BACKOFF_SECONDS: float = 1.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
