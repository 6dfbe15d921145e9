import bisect
import random
from typing import List, Optional, Set

from tambola.errors import InvalidPayload
from .layout import NUMBER_RANGE


class CallEngine:
    """Called vs available numbers for one game.

    ``called`` and ``available`` always partition 1..90. ``called`` is kept
    ascending for presentation; ``history`` keeps draw order.
    """

    def __init__(self, rng=None):
        self._rng = rng or random
        self.reset()

    def reset(self) -> None:
        self.available: Set[int] = set(NUMBER_RANGE)
        self.called: List[int] = []
        self.history: List[int] = []

    @property
    def last(self) -> Optional[int]:
        return self.history[-1] if self.history else None

    @property
    def exhausted(self) -> bool:
        return not self.available

    def draw(self) -> Optional[int]:
        """Move one uniformly chosen available number to the called set.

        Returns ``None`` when nothing is left to draw.
        """
        if not self.available:
            return None
        number = self._rng.choice(sorted(self.available))
        self._mark_called(number)
        return number

    def toggle(self, number) -> bool:
        """Force ``number`` into or out of the called set.

        Returns ``True`` when the number is now called.
        """
        if isinstance(number, bool) or not isinstance(number, int) or number not in NUMBER_RANGE:
            raise InvalidPayload(f"number must be an integer between 1 and 90, got {number!r}")
        if number in self.available:
            self._mark_called(number)
            return True
        self.called.remove(number)
        self.history.remove(number)
        self.available.add(number)
        return False

    def _mark_called(self, number: int) -> None:
        self.available.remove(number)
        bisect.insort(self.called, number)
        self.history.append(number)
