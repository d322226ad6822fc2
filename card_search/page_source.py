"""Fetch card sets and single cards from the catalog REST API."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import orjson
import requests
import tenacity

from card_search.errors import (
    MalformedPageError,
    NotFoundError,
    TransientPageFailure,
    error_for_status,
)
from card_search.models import Card
from card_search.settings import settings

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        # HTTP-date form, not worth parsing for a hint
        return None


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    logger.warning(
        "Retrying catalog request after %s (attempt %d)",
        retry_state.outcome.exception() if retry_state.outcome else None,
        retry_state.attempt_number,
    )


class CardApiClient:
    """Blocking client for the card catalog.

    The catalog is a PostgREST table with one row per card printing. It has
    no text search of its own, so the only reads are "every card in a set"
    and "one card by number".
    """

    def __init__(  # noqa: PLR0913
        self: CardApiClient,
        *,
        api_url: str | None = None,
        api_key: str | None = None,
        table: str | None = None,
        timeout: float | None = None,
        fetch_attempts: int | None = None,
        request_delay: float | None = None,
    ) -> None:
        """Initialize the client.

        Args:
        ----
            api_url: Base URL of the catalog. Defaults to ``settings.api_url``.
            api_key: Key sent as ``apikey`` and bearer token. Defaults to ``settings.api_key``.
            table: Table holding the cards. Defaults to ``settings.table``.
            timeout: Per-request timeout in seconds.
            fetch_attempts: Attempts for connection-level failures before giving up.
            request_delay: Minimum seconds between two requests.

        """
        self.api_url = (api_url or settings.api_url).rstrip("/")
        self.table = table or settings.table
        self.timeout = settings.timeout if timeout is None else timeout
        self.fetch_attempts = settings.fetch_attempts if fetch_attempts is None else fetch_attempts
        self.request_delay = settings.request_delay if request_delay is None else request_delay

        api_key = settings.api_key if api_key is None else api_key
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": "CardSearch/1.0",
            "Accept": "application/json",
        })
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })
        self._last_request_time = 0.0

    @property
    def table_url(self: CardApiClient) -> str:
        """URL of the card table endpoint."""
        return f"{self.api_url}/rest/v1/{self.table}"

    def _rate_limit(self: CardApiClient) -> None:
        """Apply rate limiting to API requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.request_delay:
            time.sleep(self.request_delay - elapsed)
        self._last_request_time = time.time()

    def _make_request(self: CardApiClient, params: dict[str, Any]) -> requests.Response:
        """Send one rate-limited GET; every retry attempt goes through here."""
        self._rate_limit()
        return self.session.get(self.table_url, params=params, timeout=self.timeout)

    def _get_rows(self: CardApiClient, key: str, params: dict[str, Any]) -> list[Any]:
        """Make a rate-limited GET against the card table.

        Connection errors and timeouts are retried; HTTP error statuses are not,
        they are mapped straight onto the failure taxonomy.

        Args:
        ----
            key: Set code or card key, used in error messages
            params: PostgREST query parameters

        Returns:
        -------
            The decoded JSON array of rows

        Raises:
        ------
            CardSourceError: For any failure, see :mod:`card_search.errors`

        """
        retryer = tenacity.retry(
            retry=tenacity.retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
            wait=tenacity.wait_exponential(multiplier=0.1, min=0.1, max=2),
            stop=tenacity.stop_after_attempt(self.fetch_attempts),
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            response = retryer(self._make_request)(params)
        except requests.RequestException as e:
            msg = f"Request for {key!r} failed: {e}"
            raise TransientPageFailure(msg, key=key) from e

        if response.status_code >= HTTP_BAD_REQUEST:
            raise error_for_status(
                response.status_code,
                key,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )

        try:
            body = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            msg = f"Response for {key!r} is not valid JSON"
            raise MalformedPageError(msg, key=key, status=response.status_code) from e

        if not isinstance(body, list):
            msg = f"Expected a JSON array for {key!r}, got {type(body).__name__}"
            raise MalformedPageError(msg, key=key, status=response.status_code)
        return body

    def fetch_set_cards(self: CardApiClient, set_code: str) -> list[Card]:
        """Fetch every card of one set, in card number order.

        Args:
        ----
            set_code: The set code (e.g., "OP-08")

        Returns:
        -------
            List of cards in the set, possibly empty

        Raises:
        ------
            CardSourceError: If the request fails or the body cannot be decoded

        """
        rows = self._get_rows(
            set_code,
            {
                "select": "*",
                "set_id": f"eq.{set_code}",
                "order": "card_set_id.asc",
            },
        )
        try:
            cards = [Card.from_row(row) for row in rows]
        except MalformedPageError as e:
            e.key = set_code
            raise
        logger.info("Fetched %d cards for set %s", len(cards), set_code)
        return cards

    def fetch_card(self: CardApiClient, card_key: str) -> Card:
        """Fetch a single card by its in-set number (e.g. "OP08-001").

        Raises:
        ------
            NotFoundError: If no card has that number

        """
        rows = self._get_rows(
            card_key,
            {
                "select": "*",
                "card_set_id": f"eq.{card_key}",
                "limit": 1,
            },
        )
        if not rows:
            msg = f"Card {card_key!r} not found"
            raise NotFoundError(msg, key=card_key)
        return Card.from_row(rows[0])

    def close(self: CardApiClient) -> None:
        """Close the underlying HTTP session."""
        self.session.close()


class CardPageSource:
    """Async page and detail source backed by :class:`CardApiClient`.

    The blocking HTTP calls run in worker threads so the event loop that owns
    the search controller stays responsive while a set downloads.
    """

    def __init__(self, client: CardApiClient | None = None) -> None:
        self.client = client or CardApiClient()

    async def fetch_page(self, set_code: str) -> list[Card]:
        """Fetch the full, unfiltered list of cards for a set."""
        return await asyncio.to_thread(self.client.fetch_set_cards, set_code)

    async def fetch_item(self, card_key: str) -> Card:
        """Fetch one card by key."""
        return await asyncio.to_thread(self.client.fetch_card, card_key)

    async def aclose(self) -> None:
        self.client.close()
