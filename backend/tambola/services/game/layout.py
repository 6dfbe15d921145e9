"""Ticket grids and the random layout generator.

A grid is 3 rows x 9 columns with exactly 5 numbers per row. Column ``c``
only holds numbers from ``COLUMN_RANGES[c]``; no number repeats.
"""
import logging
import random
from typing import Iterable, List, Optional, Sequence, Tuple

from tambola.errors import GenerationError, TicketIntegrityError

logger = logging.getLogger(__name__)

ROWS = 3
COLUMNS = 9
CELLS_PER_ROW = 5
CELLS_PER_GRID = ROWS * CELLS_PER_ROW
NUMBER_RANGE = range(1, 91)

# 0: 1-9, 1: 10-19, ..., 7: 70-79, 8: 80-90
COLUMN_RANGES: List[Tuple[int, int]] = (
    [(1, 9)] + [(10 * c, 10 * c + 9) for c in range(1, 8)] + [(80, 90)]
)


class Grid:
    """An immutable ticket layout. Empty cells are ``None``."""

    __slots__ = ('rows',)

    def __init__(self, rows: Iterable[Iterable[Optional[int]]]):
        self.rows = tuple(tuple(cell or None for cell in row) for row in rows)

    def row_numbers(self, row: int) -> List[int]:
        return [n for n in self.rows[row] if n is not None]

    def numbers(self) -> List[int]:
        """All filled cells in row-major order."""
        return [n for row in self.rows for n in row if n is not None]

    def to_list(self) -> List[List[Optional[int]]]:
        return [list(row) for row in self.rows]

    @classmethod
    def from_list(cls, rows) -> 'Grid':
        """Build a grid from JSON-style nested lists (``0`` or ``null`` for blanks).

        Raises ``TicketIntegrityError`` when the data breaks the layout rules.
        """
        if not isinstance(rows, (list, tuple)) or len(rows) != ROWS:
            raise TicketIntegrityError(f"grid must have {ROWS} rows")
        for row in rows:
            if not isinstance(row, (list, tuple)) or len(row) != COLUMNS:
                raise TicketIntegrityError(f"every row must have {COLUMNS} cells")
            for cell in row:
                if cell is not None and (isinstance(cell, bool) or not isinstance(cell, int)):
                    raise TicketIntegrityError(f"cell {cell!r} is not a number")
        problems = layout_problems(rows)
        if problems:
            raise TicketIntegrityError('; '.join(problems))
        return cls(rows)

    def __eq__(self, other):
        return isinstance(other, Grid) and self.rows == other.rows

    def __hash__(self):
        return hash(self.rows)

    def __repr__(self):
        return f"Grid({self.to_list()!r})"


def layout_problems(rows: Sequence[Sequence[Optional[int]]]) -> List[str]:
    """Return every rule the layout breaks; an empty list means it is valid."""
    problems = []
    seen = set()
    total = 0
    for r, row in enumerate(rows):
        filled = [n for n in row if n]
        total += len(filled)
        if len(filled) != CELLS_PER_ROW:
            problems.append(f"row {r} has {len(filled)} numbers, expected {CELLS_PER_ROW}")
        for c, n in enumerate(row):
            if not n:
                continue
            lo, hi = COLUMN_RANGES[c]
            if not lo <= n <= hi:
                problems.append(f"{n} is outside column {c} range {lo}-{hi}")
            if n in seen:
                problems.append(f"{n} appears more than once")
            seen.add(n)
    for c in range(min((len(row) for row in rows), default=0)):
        values = [row[c] for row in rows if row[c]]
        if not 1 <= len(values) <= ROWS:
            problems.append(f"column {c} has {len(values)} numbers, expected 1-{ROWS}")
        elif values != sorted(values):
            problems.append(f"column {c} is not ascending")
    if total != CELLS_PER_GRID:
        problems.append(f"grid has {total} numbers, expected {CELLS_PER_GRID}")
    return problems


def generate_grid(rng=None, max_attempts: int = 10) -> Grid:
    """Generate one rule-valid grid.

    Raises ``GenerationError`` when ``max_attempts`` tries all fail; an
    imperfect layout is never returned.
    """
    rng = rng or random
    for attempt in range(1, max_attempts + 1):
        rows = _place(_pick_numbers(rng), rng)
        problems = layout_problems(rows)
        if not problems:
            return Grid(rows)
        logger.debug(f"[layout-retry] attempt={attempt} problems={problems}")
    raise GenerationError(f"No valid ticket layout after {max_attempts} attempts")


def generate_grids(count: int, rng=None, max_attempts: int = 10) -> List[Grid]:
    return [generate_grid(rng, max_attempts) for _ in range(count)]


def _pick_numbers(rng) -> List[List[int]]:
    # First pass: one number for every column, columns visited in shuffled order
    columns: List[List[int]] = [[] for _ in range(COLUMNS)]
    order = list(range(COLUMNS))
    rng.shuffle(order)
    for col in order:
        lo, hi = COLUMN_RANGES[col]
        columns[col].append(rng.randint(lo, hi))

    # Second pass: top up to 15, never more than 3 per column
    total = COLUMNS
    while total < CELLS_PER_GRID:
        col = rng.choice([c for c in range(COLUMNS) if len(columns[c]) < ROWS])
        lo, hi = COLUMN_RANGES[col]
        columns[col].append(rng.choice([n for n in range(lo, hi + 1) if n not in columns[col]]))
        total += 1
    return columns


def _place(columns: List[List[int]], rng) -> List[List[Optional[int]]]:
    grid: List[List[Optional[int]]] = [[None] * COLUMNS for _ in range(ROWS)]
    filled = [0] * ROWS

    # Fullest columns first so three-number columns always find three rows
    order = list(range(COLUMNS))
    rng.shuffle(order)
    order.sort(key=lambda c: -len(columns[c]))

    for col in order:
        for value in columns[col]:
            free = [r for r in range(ROWS) if grid[r][col] is None]
            rng.shuffle(free)
            preferred = sorted((r for r in free if filled[r] < CELLS_PER_ROW), key=lambda r: filled[r])
            row = preferred[0] if preferred else free[0]
            grid[row][col] = value
            filled[row] += 1

    _rebalance(grid, filled)
    _sort_columns(grid)
    return grid


def _rebalance(grid: List[List[Optional[int]]], filled: List[int]) -> None:
    # Each move shrinks the total row imbalance, so this terminates
    while True:
        move = _find_move(grid, filled)
        if move is None:
            return
        src, dst, col = move
        grid[dst][col], grid[src][col] = grid[src][col], None
        filled[src] -= 1
        filled[dst] += 1


def _find_move(grid, filled) -> Optional[Tuple[int, int, int]]:
    for dst in range(ROWS):
        if filled[dst] >= CELLS_PER_ROW:
            continue
        for src in range(ROWS):
            if filled[src] <= CELLS_PER_ROW:
                continue
            for col in range(COLUMNS):
                if grid[src][col] is not None and grid[dst][col] is None:
                    return src, dst, col
    return None


def _sort_columns(grid: List[List[Optional[int]]]) -> None:
    # Numbers ascend top to bottom inside each column
    for col in range(COLUMNS):
        rows = [r for r in range(ROWS) if grid[r][col] is not None]
        values = sorted(grid[r][col] for r in rows)
        for r, value in zip(rows, values):
            grid[r][col] = value
