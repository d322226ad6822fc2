"""Card records and the known set universe."""

from __future__ import annotations

import dataclasses
import enum
from typing import Any, NamedTuple

from card_search.errors import MalformedPageError


class SetInfo(NamedTuple):
    """A card set that can be fetched as one page."""

    code: str
    name: str


# Newest first.
KNOWN_SETS: tuple[SetInfo, ...] = (
    SetInfo("OP-11", "A Fist of Divine Speed"),
    SetInfo("OP-10", "Royal Blood"),
    SetInfo("OP-09", "Emperors in the New World"),
    SetInfo("OP-08", "Two Legends"),
    SetInfo("OP-07", "500 Years in the Future"),
    SetInfo("OP-06", "Wings of the Captain"),
    SetInfo("OP-05", "Awakening of the New Era"),
    SetInfo("OP-04", "Kingdoms of Intrigue"),
    SetInfo("OP-03", "Pillars of Strength"),
    SetInfo("OP-02", "Paramount War"),
    SetInfo("OP-01", "Romance Dawn"),
)


class SearchPhase(enum.StrEnum):
    """Where the controller is in its search lifecycle."""

    IDLE = enum.auto()
    DEBOUNCING = enum.auto()
    FETCHING = enum.auto()
    LOADING_MORE = enum.auto()


def _string_or_int(row: dict[str, Any], column: str) -> str | None:
    """Read a column stored as either text or an integer, normalised to text."""
    value = row.get(column)
    if value is None:
        return None
    if isinstance(value, bool):
        msg = f"Column {column!r} has unexpected boolean value"
        raise MalformedPageError(msg)
    if isinstance(value, int | str):
        return str(value)
    msg = f"Column {column!r} should be a string or integer, got {type(value).__name__}"
    raise MalformedPageError(msg)


def _optional_float(row: dict[str, Any], column: str) -> float | None:
    value = row.get(column)
    if value is None:
        return None
    if isinstance(value, int | float) and not isinstance(value, bool):
        return float(value)
    msg = f"Column {column!r} should be numeric, got {type(value).__name__}"
    raise MalformedPageError(msg)


def _optional_int(row: dict[str, Any], column: str) -> int | None:
    value = row.get(column)
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    msg = f"Column {column!r} should be an integer, got {type(value).__name__}"
    raise MalformedPageError(msg)


@dataclasses.dataclass(frozen=True, slots=True)
class Card:
    """One printing of a card as returned by the catalog.

    Cards are immutable once decoded. Several printings can share a card
    number (parallel arts, alternate rarities), so list identity comes from
    :attr:`identity` rather than from any single column.
    """

    name: str
    rarity: str | None = None
    cost: str | None = None
    power: str | None = None
    counter: int | None = None
    color: str | None = None
    card_type: str | None = None
    text: str | None = None
    set_id: str | None = None
    card_set_id: str | None = None
    image_url: str | None = None
    attribute: str | None = None
    inventory_price: float | None = None
    market_price: float | None = None
    set_name: str | None = None
    sub_types: str | None = None
    life: str | None = None
    date_scraped: str | None = None
    card_image_id: str | None = None
    trigger: str | None = None
    database_id: str | None = None

    @classmethod
    def from_row(cls: type[Card], row: Any) -> Card:
        """Decode one catalog row.

        Args:
            row: A JSON object from the catalog API.

        Returns:
            The decoded card.

        Raises:
            MalformedPageError: If the row is not an object, has no name, or a
                column has the wrong type.
        """
        if not isinstance(row, dict):
            msg = f"Expected a card object, got {type(row).__name__}"
            raise MalformedPageError(msg)
        name = row.get("name")
        if not isinstance(name, str) or not name:
            msg = f"Card row is missing a name: {row.get('id')!r}"
            raise MalformedPageError(msg)

        database_id = row.get("id")
        return cls(
            name=name,
            rarity=row.get("rarity"),
            cost=_string_or_int(row, "card_cost"),
            power=_string_or_int(row, "card_power"),
            counter=_optional_int(row, "counter_amount"),
            color=row.get("card_color"),
            card_type=row.get("card_type"),
            text=row.get("card_text"),
            set_id=row.get("set_id"),
            card_set_id=row.get("card_set_id"),
            image_url=row.get("image_url"),
            attribute=row.get("attribute"),
            inventory_price=_optional_float(row, "inventory_price"),
            market_price=_optional_float(row, "market_price"),
            set_name=row.get("set_name"),
            sub_types=row.get("sub_types"),
            life=_string_or_int(row, "life"),
            date_scraped=row.get("date_scraped"),
            card_image_id=row.get("card_image_id"),
            trigger=row.get("trigger"),
            database_id=None if database_id is None else str(database_id),
        )

    @property
    def identity(self) -> str:
        """Stable key for list display: set code, in-set id, then rarity."""
        in_set = self.card_image_id or self.card_set_id or self.name.replace(" ", "_")
        parts = [self.set_id or "unknown", in_set]
        if self.rarity:
            parts.append(self.rarity)
        return "-".join(parts)

    def matches(self, needle: str) -> bool:
        """Check whether an already casefolded needle occurs in the card name."""
        return needle in self.name.casefold()

    def as_dict(self) -> dict[str, Any]:
        """Return the card as a plain dict, identity included."""
        result = dataclasses.asdict(self)
        result["identity"] = self.identity
        return result


@dataclasses.dataclass(frozen=True, slots=True)
class SearchState:
    """Snapshot of everything an observer of the controller can see."""

    results: tuple[Card, ...] = ()
    is_loading: bool = False
    is_loading_more: bool = False
    can_load_more: bool = False
    error: str | None = None
    query: str = ""
    set_filter: str | None = None
