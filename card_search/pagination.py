"""Which sets to visit for a search, and when to stop.

A search over the whole catalog starts with a small window of the newest
sets and grows it a few sets at a time. Independently, a run of consecutive
sets without a single match ends the search early: older sets are unlikely
to do better when the newest ones had nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class PaginationPlan:
    """Ordered, growable list of set codes to visit, with a cursor.

    The planned keys are always a prefix of the universe, so a key is never
    planned (or visited) twice.
    """

    def __init__(self, universe: Sequence[str], *, initial_window: int, window_step: int) -> None:
        """Initialize the plan.

        Args:
            universe: Every set code that could ever be visited, newest first.
            initial_window: Number of keys planned up front.
            window_step: Number of keys added by each :meth:`extend`.
        """
        if initial_window < 1 or window_step < 1:
            msg = "initial_window and window_step must be positive"
            raise ValueError(msg)
        if len(set(universe)) != len(universe):
            msg = "universe contains duplicate keys"
            raise ValueError(msg)
        self.universe = tuple(universe)
        self.window_step = window_step
        self._planned = min(initial_window, len(self.universe))
        self._cursor = 0

    @classmethod
    def single(cls, key: str) -> PaginationPlan:
        """Plan that visits exactly one set and can never grow."""
        return cls([key], initial_window=1, window_step=1)

    @property
    def keys(self) -> tuple[str, ...]:
        """Keys currently in the plan, visited or not."""
        return self.universe[: self._planned]

    @property
    def visited(self) -> tuple[str, ...]:
        return self.universe[: self._cursor]

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def has_unvisited(self) -> bool:
        return self._cursor < self._planned

    @property
    def can_extend(self) -> bool:
        return self._planned < len(self.universe)

    @property
    def remaining(self) -> int:
        """Keys not yet visited, planned or not."""
        return len(self.universe) - self._cursor

    def take_next(self) -> str | None:
        """Return the next unvisited planned key and move past it, or None."""
        if not self.has_unvisited:
            return None
        key = self.universe[self._cursor]
        self._cursor += 1
        return key

    def extend(self) -> bool:
        """Plan the next window of keys from the universe.

        Returns:
            True if any keys were added.
        """
        if not self.can_extend:
            return False
        self._planned = min(self._planned + self.window_step, len(self.universe))
        return True


class EmptyPageCounter:
    """Counts consecutive pages that produced no matches."""

    def __init__(self, threshold: int) -> None:
        if threshold < 1:
            msg = "threshold must be positive"
            raise ValueError(msg)
        self.threshold = threshold
        self.count = 0

    def record(self, match_count: int) -> None:
        """Record one visited page."""
        if match_count:
            self.count = 0
        else:
            self.count += 1

    def reset(self) -> None:
        self.count = 0

    @property
    def tripped(self) -> bool:
        """True once enough empty pages in a row were seen to give up."""
        return self.count >= self.threshold
