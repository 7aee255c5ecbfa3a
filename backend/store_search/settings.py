"""
Store search configuration.
Every field can be overridden with a STORE_SEARCH_<FIELD> environment variable.
"""

from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    """Store search settings loaded from STORE_SEARCH_* environment variables."""

    # Store descriptors (JSON file)
    descriptors_path: Optional[str] = None

    # Browser Configuration
    headless: bool = True
    navigation_timeout: float = 30.0
    selector_timeout: float = 15.0
    scroll_step_px: int = 200
    scroll_max_steps: int = 20
    user_agent: str = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"

    # Fleet Configuration
    politeness_delay: float = 1.0
    max_concurrent_stores: int = 4  # 0 = no limit

    # Relevance filtering service
    relevance_service_url: Optional[str] = None
    relevance_timeout: float = 30.0

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Directory for store_search.log (repo-level logs/)."""
        return Path(__file__).parent.parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Color-stripped log file written by configure_logging()."""
        return self.log_dir / "store_search.log"

    class Config:
        env_prefix = "STORE_SEARCH_"
        # .env is optional
        env_file = ".env" if Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()
