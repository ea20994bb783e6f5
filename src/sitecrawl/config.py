from dotenv import load_dotenv
from dataclasses import dataclass
from pathlib import Path
import json
import os

from sitecrawl.constants import (
    DEFAULT_CLEANUP_INTERVAL_MS,
    DEFAULT_DELAY_BETWEEN_REQUESTS_MS,
    DEFAULT_IDLE_TIMEOUT_MS,
    DEFAULT_LAUNCH_TIMEOUT_MS,
    DEFAULT_MAX_PAGES,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DEFAULT_POOL_MAX_SIZE,
)

load_dotenv()  # Loads variables from .env file


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    POOL_MAX_SIZE = int(os.getenv("SITECRAWL_POOL_MAX_SIZE", str(DEFAULT_POOL_MAX_SIZE)))
    LAUNCH_TIMEOUT_MS = int(os.getenv("SITECRAWL_LAUNCH_TIMEOUT_MS", str(DEFAULT_LAUNCH_TIMEOUT_MS)))
    IDLE_TIMEOUT_MS = int(os.getenv("SITECRAWL_IDLE_TIMEOUT_MS", str(DEFAULT_IDLE_TIMEOUT_MS)))
    CLEANUP_INTERVAL_MS = int(os.getenv("SITECRAWL_CLEANUP_INTERVAL_MS", str(DEFAULT_CLEANUP_INTERVAL_MS)))
    HEADLESS = _env_bool("SITECRAWL_HEADLESS", True)
    USER_AGENT = os.getenv("SITECRAWL_USER_AGENT")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("SITECRAWL_LOG_FILE")


settings = Settings()


@dataclass
class CrawlDefaults:
    """Default per-job crawl settings, overridable from env or a JSON file."""

    max_pages: int = DEFAULT_MAX_PAGES
    delay_between_requests: int = DEFAULT_DELAY_BETWEEN_REQUESTS_MS
    timeout: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    dismiss_cookies: bool = True
    wait_until: str = "networkidle"

    @classmethod
    def from_env(cls) -> "CrawlDefaults":
        """Load defaults from environment variables.

        Environment variables should be prefixed with SITECRAWL_CRAWL_
        e.g., SITECRAWL_CRAWL_MAX_PAGES=50

        Returns:
            CrawlDefaults with values from environment
        """
        defaults = cls()
        prefix = "SITECRAWL_CRAWL_"

        for field_name in defaults.__dataclass_fields__:
            env_value = os.getenv(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue

            current = getattr(defaults, field_name)
            try:
                if isinstance(current, bool):
                    setattr(defaults, field_name, env_value.strip().lower() in ("1", "true", "yes", "on"))
                elif isinstance(current, int):
                    setattr(defaults, field_name, int(env_value))
                else:
                    setattr(defaults, field_name, env_value)
            except ValueError:
                pass  # Keep default if conversion fails

        return defaults

    @classmethod
    def from_file(cls, path: str) -> "CrawlDefaults":
        """Load defaults from a JSON configuration file.

        Args:
            path: Path to JSON configuration file

        Returns:
            CrawlDefaults with values from file
        """
        defaults = cls()
        file_path = Path(path)

        if not file_path.exists():
            return defaults

        with open(file_path, 'r') as f:
            config = json.load(f)

        crawl_config = config.get('crawl', config)

        for field_name in defaults.__dataclass_fields__:
            if field_name in crawl_config:
                setattr(defaults, field_name, crawl_config[field_name])

        return defaults

    def to_dict(self) -> dict:
        """Convert defaults to dictionary."""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }

    def save_to_file(self, path: str) -> None:
        """Save current defaults to a JSON file.

        Args:
            path: Path to save configuration
        """
        with open(path, 'w') as f:
            json.dump({'crawl': self.to_dict()}, f, indent=2)
