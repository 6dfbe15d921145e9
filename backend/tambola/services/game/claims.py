"""Win conditions and the claim validator.

``validate`` is a pure function of the player's tickets, the claim type and
the called numbers, so a claim can be re-checked at any time from room state.
"""
import re
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from tambola.errors import TicketIntegrityError, UnknownClaimType
from .layout import CELLS_PER_GRID, Grid


class WinCondition(Enum):
    TOP_LINE = 'Top Line'
    MIDDLE_LINE = 'Middle Line'
    BOTTOM_LINE = 'Bottom Line'
    FOUR_CORNERS = 'Four Corners'
    EARLY_FIVE = 'Early Five'
    FULL_HOUSE = 'Full House'

    @classmethod
    def parse(cls, name) -> 'WinCondition':
        """Resolve a display name or a known alias ("Corners", "fullHouse", ...)."""
        if isinstance(name, cls):
            return name
        if isinstance(name, str):
            condition = _ALIASES.get(re.sub(r'[^a-z0-9]', '', name.lower()))
            if condition is not None:
                return condition
        raise UnknownClaimType(name)


_ALIASES: Dict[str, WinCondition] = {
    'topline': WinCondition.TOP_LINE,
    'firstline': WinCondition.TOP_LINE,
    'middleline': WinCondition.MIDDLE_LINE,
    'secondline': WinCondition.MIDDLE_LINE,
    'bottomline': WinCondition.BOTTOM_LINE,
    'thirdline': WinCondition.BOTTOM_LINE,
    'fourcorners': WinCondition.FOUR_CORNERS,
    'corners': WinCondition.FOUR_CORNERS,
    'earlyfive': WinCondition.EARLY_FIVE,
    'early5': WinCondition.EARLY_FIVE,
    'quickfive': WinCondition.EARLY_FIVE,
    'quick5': WinCondition.EARLY_FIVE,
    'fullhouse': WinCondition.FULL_HOUSE,
    'tambola': WinCondition.FULL_HOUSE,
    'housie': WinCondition.FULL_HOUSE,
}


class ClaimResult:
    def __init__(self, condition: WinCondition, valid: bool, ticket=None,
                 numbers: Optional[List[int]] = None, reason: Optional[str] = None):
        self.condition = condition
        self.valid = valid
        self.ticket = ticket
        self.numbers = numbers or []
        self.reason = reason


def _line(row: int) -> Callable[[Grid, Set[int]], Optional[List[int]]]:
    def check(grid: Grid, called: Set[int]) -> Optional[List[int]]:
        numbers = grid.row_numbers(row)
        if numbers and all(n in called for n in numbers):
            return numbers
        return None
    return check


def _four_corners(grid: Grid, called: Set[int]) -> Optional[List[int]]:
    top, bottom = grid.row_numbers(0), grid.row_numbers(2)
    if not top or not bottom:
        return None
    corners = [top[0], top[-1], bottom[0], bottom[-1]]
    if len(set(corners)) != 4:
        return None
    return corners if all(n in called for n in corners) else None


def _early_five(grid: Grid, called: Set[int]) -> Optional[List[int]]:
    matches = [n for n in grid.numbers() if n in called]
    return matches[:5] if len(matches) >= 5 else None


def _full_house(grid: Grid, called: Set[int]) -> Optional[List[int]]:
    numbers = grid.numbers()
    if len(numbers) != CELLS_PER_GRID:
        raise TicketIntegrityError(
            f"ticket has {len(numbers)} numbers, a full house needs {CELLS_PER_GRID}"
        )
    return numbers if all(n in called for n in numbers) else None


CHECKS: Dict[WinCondition, Callable[[Grid, Set[int]], Optional[List[int]]]] = {
    WinCondition.TOP_LINE: _line(0),
    WinCondition.MIDDLE_LINE: _line(1),
    WinCondition.BOTTOM_LINE: _line(2),
    WinCondition.FOUR_CORNERS: _four_corners,
    WinCondition.EARLY_FIVE: _early_five,
    WinCondition.FULL_HOUSE: _full_house,
}


def validate(tickets: Sequence, claim_type, called: Iterable[int]) -> ClaimResult:
    """Find the first ticket (in assignment order) that satisfies ``claim_type``.

    ``tickets`` are objects with ``.grid``. Raises ``UnknownClaimType``.
    """
    condition = WinCondition.parse(claim_type)
    check = CHECKS[condition]
    called_set = set(called)
    for ticket in tickets:
        numbers = check(ticket.grid, called_set)
        if numbers is not None:
            return ClaimResult(condition, True, ticket, numbers)
    if not tickets:
        reason = 'You do not hold any tickets'
    else:
        reason = f"None of your {len(tickets)} ticket(s) completes {condition.value}"
    return ClaimResult(condition, False, reason=reason)
