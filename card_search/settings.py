"""Settings module for runtime configuration."""

from __future__ import annotations

import os


def _is_truthy(value: str | None) -> bool:
    """Check if a string value is truthy.

    Args:
        value: String value to check

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise
    """
    if value is None:
        return False
    return value.lower() in ("true", "1", "yes")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return default if value in (None, "") else int(value)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return default if value in (None, "") else float(value)


class Settings:
    """Simple settings class for runtime configuration."""

    def __init__(self) -> None:
        """Initialize settings from environment variables."""
        self.api_url = os.environ.get("CARD_SEARCH_API_URL", "http://localhost:54321").rstrip("/")
        self.api_key = os.environ.get("CARD_SEARCH_API_KEY", "")
        self.table = os.environ.get("CARD_SEARCH_TABLE", "op_cards")
        self.timeout = _env_float("CARD_SEARCH_TIMEOUT", 30.0)
        self.fetch_attempts = _env_int("CARD_SEARCH_FETCH_ATTEMPTS", 3)
        self.request_delay = _env_float("CARD_SEARCH_REQUEST_DELAY", 0.1)

        self._enable_cache = _is_truthy(os.environ.get("CARD_SEARCH_ENABLE_CACHE", "true"))
        maxsize = os.environ.get("CARD_SEARCH_CACHE_MAXSIZE")
        self.cache_maxsize = int(maxsize) if maxsize else None

        self.debounce_seconds = _env_float("CARD_SEARCH_DEBOUNCE_SECONDS", 0.5)
        self.initial_window = _env_int("CARD_SEARCH_INITIAL_WINDOW", 2)
        self.window_step = _env_int("CARD_SEARCH_WINDOW_STEP", 2)
        self.first_batch_max_results = _env_int("CARD_SEARCH_FIRST_BATCH_MAX_RESULTS", 20)
        self.batch_max_results = _env_int("CARD_SEARCH_BATCH_MAX_RESULTS", 50)
        self.max_pages_per_batch = _env_int("CARD_SEARCH_MAX_PAGES_PER_BATCH", 2)
        self.empty_page_threshold = _env_int("CARD_SEARCH_EMPTY_PAGE_THRESHOLD", 3)

    @property
    def enable_cache(self) -> bool:
        """Check if page caching is enabled."""
        return self._enable_cache

    @enable_cache.setter
    def enable_cache(self, value: bool) -> None:
        """Set page caching enabled state."""
        self._enable_cache = value


# Global settings instance
settings = Settings()
