"""State of one logical search."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from card_search.pagination import EmptyPageCounter, PaginationPlan

if TYPE_CHECKING:
    from collections.abc import Sequence

    from card_search.errors import CardSourceError
    from card_search.models import Card

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class SearchSession:
    """One committed query, identified by its token.

    Everything here is private to the session; a superseded session is simply
    dropped by the controller and whatever its loop does afterwards is never
    published.
    """

    token: int
    query: str
    set_filter: str | None
    plan: PaginationPlan
    empty_pages: EmptyPageCounter
    results: list[Card] = dataclasses.field(default_factory=list)
    done: bool = False
    pages_visited: int = 0
    pages_failed: int = 0
    last_failure: CardSourceError | None = None
    batches: int = 0

    @classmethod
    def start(  # noqa: PLR0913
        cls,
        token: int,
        query: str,
        set_filter: str | None,
        *,
        universe: Sequence[str],
        initial_window: int,
        window_step: int,
        empty_page_threshold: int,
    ) -> SearchSession:
        """Create a session scoped to one set or to the whole universe."""
        if set_filter:
            plan = PaginationPlan.single(set_filter)
        else:
            plan = PaginationPlan(universe, initial_window=initial_window, window_step=window_step)
        return cls(
            token=token,
            query=query,
            set_filter=set_filter or None,
            plan=plan,
            empty_pages=EmptyPageCounter(empty_page_threshold),
        )

    @property
    def needle(self) -> str:
        return self.query.strip().casefold()

    @property
    def exhausted(self) -> bool:
        """Too many empty pages in a row; stop regardless of what is left."""
        return self.empty_pages.tripped

    @property
    def can_load_more(self) -> bool:
        if self.done or self.exhausted:
            return False
        return self.plan.has_unvisited or self.plan.can_extend

    @property
    def all_pages_failed(self) -> bool:
        return self.pages_visited > 0 and self.pages_failed == self.pages_visited

    def next_key(self) -> str | None:
        """Next set to visit, growing the plan when its window is used up.

        A freshly planned window gets a clean empty-page count even if the
        previous window produced nothing.

        Returns:
            The set code, or None when the universe is fully enumerated.
        """
        key = self.plan.take_next()
        if key is None and self.plan.extend():
            logger.debug("Session %d extended plan to %s", self.token, self.plan.keys)
            self.empty_pages.reset()
            key = self.plan.take_next()
        if key is None:
            self.done = True
        return key

    def record_page(self, cards: Sequence[Card]) -> list[Card]:
        """Filter a visited page and append its matches.

        Returns:
            The matching cards, in page order.
        """
        needle = self.needle
        matches = [card for card in cards if card.matches(needle)]
        self.results.extend(matches)
        self.empty_pages.record(len(matches))
        self.pages_visited += 1
        return matches

    def record_failure(self, error: CardSourceError) -> None:
        """Count a failed page as visited with no matches."""
        self.empty_pages.record(0)
        self.pages_visited += 1
        self.pages_failed += 1
        self.last_failure = error
