"""Incremental card search over a catalog that can only be read one set at a time."""

from card_search.controller import SearchController, SearchLimits
from card_search.models import KNOWN_SETS, Card, SearchPhase, SearchState, SetInfo
from card_search.page_cache import PageCache
from card_search.page_source import CardApiClient, CardPageSource

__all__ = [
    "KNOWN_SETS",
    "Card",
    "CardApiClient",
    "CardPageSource",
    "PageCache",
    "SearchController",
    "SearchLimits",
    "SearchPhase",
    "SearchState",
    "SetInfo",
]
