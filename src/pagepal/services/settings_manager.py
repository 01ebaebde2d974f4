"""Settings Manager - Handles library location and network configuration."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"
)


@dataclass(frozen=True)
class RetrieverConfig:
    """Network behaviour of a Retriever.

    Attributes:
        user_agent: User-Agent header sent with every request.
        delay: Minimum seconds between two requests to the same domain.
        timeout: Per-request timeout in seconds.
        max_retries: Attempts per request before giving up.
        backoff: Base of the exponential wait between attempts, in seconds.
        concurrency: Requests issued together by batch fetches.
    """

    user_agent: str = DEFAULT_USER_AGENT
    delay: float = 0.1
    timeout: float = 20.0
    max_retries: int = 3
    backoff: float = 0.5
    concurrency: int = 8


class SettingsManager:
    """
    Manages library and network settings.

    Reads values from a .env file in the project root, falling back to the
    process environment and then to built-in defaults.
    """

    def __init__(self, project_root: Optional[Path] = None):
        """
        Initialize settings manager.

        Args:
            project_root: Path to project root where .env is located.
                         If None, uses the current working directory.
        """
        if project_root is None:
            project_root = Path.cwd()

        self._project_root = Path(project_root)
        load_dotenv(dotenv_path=self._project_root / ".env")

    def get_library_dir(self) -> Path:
        """Directory downloaded books are written to."""
        value = self._get("PAGEPAL_LIBRARY_DIR")
        return Path(value) if value else self._project_root / "library"

    def get_db_path(self) -> Path:
        value = self._get("PAGEPAL_DB_PATH")
        return Path(value) if value else self.get_library_dir() / "pagepal.db"

    def get_user_agent(self) -> str:
        return self._get("PAGEPAL_USER_AGENT") or DEFAULT_USER_AGENT

    def get_request_delay(self) -> float:
        """Per-domain request spacing in seconds (configured in milliseconds)."""
        millis = self._get_number("PAGEPAL_REQUEST_DELAY_MS", 100, int)
        return millis / 1000

    def get_timeout(self) -> float:
        return self._get_number("PAGEPAL_TIMEOUT", 20.0, float)

    def get_max_retries(self) -> int:
        return max(1, self._get_number("PAGEPAL_MAX_RETRIES", 3, int))

    def get_concurrency(self) -> int:
        return max(1, self._get_number("PAGEPAL_CONCURRENCY", 8, int))

    def retriever_config(self) -> RetrieverConfig:
        return RetrieverConfig(
            user_agent=self.get_user_agent(),
            delay=self.get_request_delay(),
            timeout=self.get_timeout(),
            max_retries=self.get_max_retries(),
            concurrency=self.get_concurrency(),
        )

    def reload_env(self) -> None:
        """Reload environment variables from .env file."""
        load_dotenv(dotenv_path=self._project_root / ".env", override=True)

    @staticmethod
    def _get(name: str) -> Optional[str]:
        value = os.getenv(name)
        return value.strip() if value and value.strip() else None

    def _get_number(self, name: str, default, cast):
        value = self._get(name)
        if value is None:
            return default
        try:
            number = cast(value)
        except ValueError:
            logger.warning("Ignoring malformed %s=%r", name, value)
            return default
        if number < 0:
            logger.warning("Ignoring negative %s=%r", name, value)
            return default
        return number
