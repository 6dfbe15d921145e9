import random

import pytest

from tambola.errors import GenerationError, TicketIntegrityError
from tambola.services.game import layout
from tambola.services.game.layout import COLUMN_RANGES, Grid, generate_grid, layout_problems


def _assert_valid(grid):
    numbers = grid.numbers()
    assert len(numbers) == 15
    assert len(set(numbers)) == 15
    for row in grid.rows:
        assert len(row) == 9
        assert sum(1 for n in row if n is not None) == 5
    for col in range(9):
        values = [grid.rows[r][col] for r in range(3) if grid.rows[r][col] is not None]
        assert 1 <= len(values) <= 3
        assert values == sorted(values)
        lo, hi = COLUMN_RANGES[col]
        assert all(lo <= n <= hi for n in values)


def test_column_ranges_cover_1_to_90():
    assert COLUMN_RANGES[0] == (1, 9)
    assert COLUMN_RANGES[4] == (40, 49)
    assert COLUMN_RANGES[8] == (80, 90)
    covered = [n for lo, hi in COLUMN_RANGES for n in range(lo, hi + 1)]
    assert covered == list(range(1, 91))


@pytest.mark.parametrize('seed', range(5))
def test_generated_grids_follow_layout_rules(seed):
    rng = random.Random(seed)
    for _ in range(100):
        _assert_valid(generate_grid(rng))


def test_generator_uses_module_random_by_default():
    _assert_valid(generate_grid())


def test_generator_raises_instead_of_returning_bad_layout(monkeypatch):
    calls = []

    def broken_place(columns, rng):
        calls.append(1)
        return [[None] * 9 for _ in range(3)]

    monkeypatch.setattr(layout, '_place', broken_place)
    with pytest.raises(GenerationError):
        generate_grid(random.Random(1), max_attempts=4)
    assert len(calls) == 4


def test_generator_with_no_attempts_fails():
    with pytest.raises(GenerationError):
        generate_grid(random.Random(1), max_attempts=0)


def test_from_list_accepts_zero_blanks():
    rows = [
        [4, 0, 23, 0, 45, 0, 67, 0, 88],
        [0, 12, 0, 34, 0, 56, 0, 78, 89],
        [7, 15, 0, 38, 0, 59, 0, 79, 0],
    ]
    grid = Grid.from_list(rows)
    assert grid.row_numbers(1) == [12, 34, 56, 78, 89]
    assert grid.to_list()[0][1] is None


@pytest.mark.parametrize('rows', [
    # row 0 has only four numbers
    [[4, 0, 23, 0, 45, 0, 67, 0, 0],
     [0, 12, 0, 34, 0, 56, 0, 78, 89],
     [7, 15, 0, 38, 0, 59, 0, 79, 0]],
    # 5 is out of column 1's range
    [[4, 5, 23, 0, 45, 0, 67, 0, 0],
     [0, 12, 0, 34, 0, 56, 0, 78, 89],
     [7, 15, 0, 38, 0, 59, 0, 79, 0]],
    # 12 repeated
    [[4, 12, 23, 0, 45, 0, 0, 0, 88],
     [0, 12, 0, 34, 0, 56, 0, 78, 89],
     [7, 15, 0, 38, 0, 59, 0, 79, 0]],
    # column 1 descends
    [[4, 0, 23, 0, 45, 0, 67, 0, 88],
     [0, 15, 0, 34, 0, 56, 0, 78, 89],
     [7, 12, 0, 38, 0, 59, 0, 79, 0]],
    # column 2 empty, column 0 has three
    [[4, 0, 0, 31, 45, 0, 67, 0, 88],
     [5, 12, 0, 34, 0, 56, 0, 78, 0],
     [7, 15, 0, 38, 0, 59, 0, 79, 0]],
    # only two rows
    [[4, 0, 23, 0, 45, 0, 67, 0, 88],
     [0, 12, 0, 34, 0, 56, 0, 78, 89]],
    # a string cell
    [['4', 0, 23, 0, 45, 0, 67, 0, 88],
     [0, 12, 0, 34, 0, 56, 0, 78, 89],
     [7, 15, 0, 38, 0, 59, 0, 79, 0]],
])
def test_from_list_rejects_broken_layouts(rows):
    with pytest.raises(TicketIntegrityError):
        Grid.from_list(rows)


def test_layout_problems_names_each_rule():
    problems = layout_problems([[None] * 9, [None] * 9, [None] * 9])
    assert any('row 0' in p for p in problems)
    assert any('expected 15' in p for p in problems)
