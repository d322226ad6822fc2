"""In-memory cache of fetched card sets."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import cachetools

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, MutableMapping

    from card_search.models import Card

logger = logging.getLogger(__name__)


class PageCache:
    """Map from set code to the cards fetched for it.

    A set is fetched at most once and then reused for the life of the
    controller. By default nothing is evicted; pass ``maxsize`` to bound the
    cache with LRU eviction for long-lived processes.

    Two overlapping sessions that miss on the same key at the same time will
    both fetch it; the second store replaces an equivalent entry.
    """

    def __init__(self, maxsize: int | None = None, *, enabled: bool = True) -> None:
        """Initialize the cache.

        Args:
            maxsize: Maximum number of sets to keep, or None for no limit.
            enabled: When False every lookup goes to the source and nothing is stored.

        Raises:
            ValueError: If ``maxsize`` is not positive.
        """
        if maxsize is not None and maxsize < 1:
            msg = f"maxsize must be positive or None, got {maxsize}"
            raise ValueError(msg)
        self.maxsize = maxsize
        self.enabled = enabled
        self._pages: MutableMapping[str, list[Card]] = {} if maxsize is None else cachetools.LRUCache(maxsize=maxsize)
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: str) -> bool:
        return key in self._pages

    def __len__(self) -> int:
        return len(self._pages)

    def peek(self, key: str) -> list[Card] | None:
        """Return the cached cards for a set without fetching or counting a hit."""
        return self._pages.get(key)

    async def get_or_fetch(self, key: str, fetch: Callable[[str], Awaitable[list[Card]]]) -> list[Card]:
        """Return the cards for a set, fetching them on a miss.

        Args:
            key: Set code
            fetch: Coroutine function that downloads a set

        Returns:
            The cards of the set

        Raises:
            CardSourceError: Whatever ``fetch`` raises. Failures are never stored.
        """
        if self.enabled:
            cached = self._pages.get(key)
            if cached is not None:
                self.hits += 1
                logger.debug("Page cache hit for %s", key)
                return cached

        self.misses += 1
        cards = await fetch(key)
        if self.enabled:
            self._pages[key] = cards
        return cards

    def clear(self) -> None:
        """Drop all cached sets and reset the counters."""
        self._pages.clear()
        self.hits = 0
        self.misses = 0
