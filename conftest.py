"""Fixtures for the test suite."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import pytest

from card_search.controller import SearchController, SearchLimits
from card_search.models import Card, SetInfo
from card_search.page_cache import PageCache

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logging.basicConfig(
    force=True,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)


class FakeCatalog:
    """In-memory page and item source with controllable timing.

    Sets missing from ``pages`` come back empty. ``failures`` maps a set
    code (or card key) to the exception its fetch raises. ``hold`` makes a
    fetch wait until the returned event is set.
    """

    def __init__(
        self,
        pages: dict[str, list[Card]] | None = None,
        *,
        failures: dict[str, Exception] | None = None,
        items: dict[str, Card] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.failures = failures or {}
        self.items = items or {}
        self.calls: list[str] = []
        self.item_calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.closed = False

    def hold(self, key: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[key] = gate
        return gate

    async def _wait(self, key: str) -> None:
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)

    async def fetch_page(self, set_code: str) -> list[Card]:
        self.calls.append(set_code)
        await self._wait(set_code)
        if set_code in self.failures:
            raise self.failures[set_code]
        return list(self.pages.get(set_code, []))

    async def fetch_item(self, card_key: str) -> Card:
        self.item_calls.append(card_key)
        await self._wait(card_key)
        if card_key in self.failures:
            raise self.failures[card_key]
        return self.items[card_key]

    async def wait_for_call(self, key: str, timeout: float = 1.0) -> None:
        async with asyncio.timeout(timeout):
            while key not in self.calls and key not in self.item_calls:
                await asyncio.sleep(0.001)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def universe() -> list[SetInfo]:
    """Eleven sets P11 (newest) down to P1."""
    return [SetInfo(f"P{i}", f"Pack {i}") for i in range(11, 0, -1)]


@pytest.fixture
def make_controller(catalog: FakeCatalog, universe: list[SetInfo]) -> Callable[..., SearchController]:
    """Build a controller over ``catalog`` with a short debounce.

    Keyword arguments matching :class:`SearchLimits` fields override limits;
    ``known_sets`` overrides the universe.
    """

    def factory(*, known_sets: Sequence[SetInfo] | None = None, **limit_overrides: float) -> SearchController:
        limits = SearchLimits(**{"debounce_seconds": 0.01, **limit_overrides})
        return SearchController(
            catalog,
            known_sets=universe if known_sets is None else known_sets,
            limits=limits,
            page_cache=PageCache(),
        )

    return factory
