"""Incremental, debounced card search over a per-set catalog.

The catalog can only be read one whole set at a time, so searching means
downloading sets newest-first and filtering them locally. The controller
hides that behind a live-search interface:

- ``submit_query`` is cheap and can be called on every keystroke. Only the
  last query inside the debounce delay is searched.
- Each committed query gets a new integer token. Loops and lookups started
  for an older token notice at their next suspension point and leave
  without touching any published state.
- Each batch visits a bounded number of sets; ``load_more`` continues where
  the previous batch stopped.

All methods must be called from the event loop that owns the controller,
and every state change is published on that loop.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import logging
from typing import TYPE_CHECKING, Protocol

from card_search.errors import EXPECTED_FAILURES, CardSourceError
from card_search.models import KNOWN_SETS, Card, SearchPhase, SearchState, SetInfo
from card_search.page_cache import PageCache
from card_search.session import SearchSession
from card_search.settings import Settings, settings

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Sequence
    from types import TracebackType
    from typing import Any

logger = logging.getLogger(__name__)


def _log_task_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Search task %s failed", task.get_name(), exc_info=error)


class PageSource(Protocol):
    """Anything that can download one full set."""

    async def fetch_page(self, set_code: str) -> list[Card]: ...


class ItemSource(Protocol):
    """Anything that can download one card by key."""

    async def fetch_item(self, card_key: str) -> Card: ...


@dataclasses.dataclass(frozen=True)
class SearchLimits:
    """Tuning knobs for debouncing and batch sizes."""

    debounce_seconds: float = 0.5
    initial_window: int = 2  # sets planned before the first extension
    window_step: int = 2
    first_batch_max_results: int = 20  # smaller first batch for a quick first paint
    batch_max_results: int = 50
    max_pages_per_batch: int = 2
    empty_page_threshold: int = 3

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> SearchLimits:
        source = source or settings
        return cls(
            debounce_seconds=source.debounce_seconds,
            initial_window=source.initial_window,
            window_step=source.window_step,
            first_batch_max_results=source.first_batch_max_results,
            batch_max_results=source.batch_max_results,
            max_pages_per_batch=source.max_pages_per_batch,
            empty_page_threshold=source.empty_page_threshold,
        )


class SearchController:
    """Owns the search sessions and the state the UI observes."""

    def __init__(
        self,
        page_source: PageSource,
        *,
        item_source: ItemSource | None = None,
        known_sets: Sequence[SetInfo] = KNOWN_SETS,
        limits: SearchLimits | None = None,
        page_cache: PageCache | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            page_source: Downloads whole sets.
            item_source: Downloads single cards for :meth:`resolve_item`. Defaults
                to ``page_source`` when it can do both.
            known_sets: Universe of sets, newest first.
            limits: Debounce and batch limits. Defaults come from settings.
            page_cache: Cache of downloaded sets. One is created from settings if omitted.
        """
        self.page_source = page_source
        self.item_source = item_source if item_source is not None else page_source
        self.known_sets = tuple(known_sets)
        self.limits = limits or SearchLimits.from_settings()
        if page_cache is None:
            page_cache = PageCache(settings.cache_maxsize, enabled=settings.enable_cache)
        self.page_cache = page_cache

        self._tokens = itertools.count(1)
        self._current_token = 0
        self._session: SearchSession | None = None
        self._state = SearchState()
        self._phase = SearchPhase.IDLE
        self._listeners: list[Callable[[SearchState], None]] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    # Observable state

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def results(self) -> list[Card]:
        return list(self._state.results)

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def is_loading_more(self) -> bool:
        return self._state.is_loading_more

    @property
    def can_load_more(self) -> bool:
        return self._state.can_load_more

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def phase(self) -> SearchPhase:
        return self._phase

    @property
    def current_token(self) -> int:
        """Token of the latest submitted query; pass it to :meth:`resolve_item`."""
        return self._current_token

    def available_sets(self) -> list[SetInfo]:
        """Sets a query can be restricted to, newest first."""
        return list(self.known_sets)

    def subscribe(self, listener: Callable[[SearchState], None]) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every state change.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, **changes: Any) -> None:
        self._state = dataclasses.replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Search state listener %r failed", listener)

    # Public operations

    def submit_query(self, query: str, set_filter: str | None = None) -> asyncio.Task[None]:
        """Request a search; only the last request inside the debounce delay runs.

        Any pending debounce and any running batch for an older query become
        stale immediately. Nothing visible changes until the delay elapses.

        Args:
            query: Text to look for in card names.
            set_filter: Restrict the search to this one set code.

        Returns:
            A task that finishes once the debounced search has run its first
            batch or found out it was superseded.
        """
        if self._closed:
            msg = "SearchController is closed"
            raise RuntimeError(msg)
        token = next(self._tokens)
        self._current_token = token
        self._phase = SearchPhase.DEBOUNCING
        logger.debug("Query %r (set %s) scheduled with token %d", query, set_filter, token)
        return self._spawn(self._debounced_search(token, query, set_filter or None))

    def load_more(self) -> asyncio.Task[None] | None:
        """Continue the current search with another batch.

        Returns:
            The batch task, or None when there is nothing to load.
        """
        session = self._session
        state = self._state
        if (
            session is None
            or session.token != self._current_token
            or not session.needle
            or not state.can_load_more
            or state.is_loading
            or state.is_loading_more
        ):
            return None
        logger.info("Loading more results for %r (token %d)", session.query, session.token)
        self._phase = SearchPhase.LOADING_MORE
        self._commit(is_loading_more=True)
        return self._spawn(self._run(session))

    async def resolve_item(self, set_code: str, card_key: str, token: int) -> Card | None:
        """Look up one card for a detail view.

        A cached copy of ``set_code`` is used when it holds the card. Missing
        cards and rate limiting are normal while browsing and come back as None.

        Args:
            set_code: Set the card was shown under.
            card_key: Card number, image id or identity.
            token: :attr:`current_token` as seen by the caller.

        Returns:
            The card, or None if it was not found or ``token`` went stale.

        Raises:
            CardSourceError: For failures other than not-found and rate limiting.
        """
        if token != self._current_token:
            return None

        cached = self.page_cache.peek(set_code)
        if cached is not None:
            for card in cached:
                if card_key in (card.card_set_id, card.card_image_id, card.identity):
                    return card

        try:
            card = await self.item_source.fetch_item(card_key)
        except EXPECTED_FAILURES as e:
            if token == self._current_token:
                logger.info("Card %s not available: %s", card_key, e)
            return None
        except CardSourceError as e:
            if token != self._current_token:
                logger.debug("Dropping failed stale lookup of card %s: %s", card_key, e)
                return None
            logger.error("Error fetching card %s: %s", card_key, e)
            raise

        if token != self._current_token:
            logger.debug("Dropping stale lookup of card %s", card_key)
            return None
        return card

    async def wait_idle(self) -> None:
        """Wait until no debounce or batch task is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def aclose(self) -> None:
        """Tear down: invalidate the current search and cancel outstanding work."""
        self._closed = True
        self._current_token = next(self._tokens)
        self._session = None
        self._phase = SearchPhase.IDLE
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        sources = [self.page_source]
        if self.item_source is not self.page_source:
            sources.append(self.item_source)
        for source in sources:
            if hasattr(source, "aclose"):
                await source.aclose()
            elif hasattr(source, "close"):
                source.close()

    async def __aenter__(self) -> SearchController:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    # Internals

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_log_task_failure)
        return task

    def _is_current(self, session: SearchSession) -> bool:
        return session.token == self._current_token and self._session is session

    async def _debounced_search(self, token: int, query: str, set_filter: str | None) -> None:
        await asyncio.sleep(self.limits.debounce_seconds)
        if token != self._current_token:
            logger.debug("Debounced query %r superseded", query)
            return

        if not query.strip():
            self._session = None
            self._phase = SearchPhase.IDLE
            self._commit(
                results=(),
                is_loading=False,
                is_loading_more=False,
                can_load_more=False,
                error=None,
                query=query,
                set_filter=set_filter,
            )
            return

        if set_filter and set_filter not in {s.code for s in self.known_sets}:
            logger.warning("Set filter %s is not a known set", set_filter)

        session = SearchSession.start(
            token,
            query,
            set_filter,
            universe=[s.code for s in self.known_sets],
            initial_window=self.limits.initial_window,
            window_step=self.limits.window_step,
            empty_page_threshold=self.limits.empty_page_threshold,
        )
        self._session = session
        self._phase = SearchPhase.FETCHING
        logger.info("Searching for %r in %s (token %d)", query, set_filter or "all sets", token)
        self._commit(
            results=(),
            is_loading=True,
            is_loading_more=False,
            can_load_more=False,
            error=None,
            query=query,
            set_filter=set_filter,
        )
        await self._run(session)

    async def _run(self, session: SearchSession) -> None:
        try:
            await self._fetch_batch(session)
        except Exception:
            if self._is_current(session):
                self._phase = SearchPhase.IDLE
                self._commit(is_loading=False, is_loading_more=False, can_load_more=False)
            raise

        if not self._is_current(session):
            logger.debug("Search %d superseded, dropping its batch", session.token)
            return

        can_load_more = session.can_load_more
        error = None
        if not can_load_more and session.all_pages_failed:
            error = f"Failed to search cards: {session.last_failure}"
            logger.warning("Every set failed for %r: %s", session.query, session.last_failure)

        self._phase = SearchPhase.IDLE
        self._commit(
            results=tuple(session.results),
            is_loading=False,
            is_loading_more=False,
            can_load_more=can_load_more,
            error=error,
        )
        logger.info(
            "Search %d has %d results after %d sets (can_load_more=%s)",
            session.token,
            len(session.results),
            session.pages_visited,
            can_load_more,
        )

    async def _fetch_batch(self, session: SearchSession) -> None:
        """Visit sets until a batch limit is hit or nothing is left."""
        if session.batches == 0:
            max_results = self.limits.first_batch_max_results
        else:
            max_results = self.limits.batch_max_results
        session.batches += 1
        pages = collected = 0

        while self._is_current(session) and not session.exhausted:
            if pages >= self.limits.max_pages_per_batch or collected >= max_results:
                break
            key = session.next_key()
            if key is None:
                break

            failure: CardSourceError | None = None
            cards: list[Card] = []
            try:
                cards = await self.page_cache.get_or_fetch(key, self.page_source.fetch_page)
            except EXPECTED_FAILURES as e:
                logger.info("Set %s unavailable, treating as empty: %s", key, e)
            except CardSourceError as e:
                failure = e

            if not self._is_current(session):
                return

            if failure is not None:
                logger.warning("Skipping set %s for %r: %s", key, session.query, failure)
                session.record_failure(failure)
                matches = []
            else:
                matches = session.record_page(cards)
            pages += 1
            collected += len(matches)
            if matches:
                self._commit(results=tuple(session.results))
