import random

import pytest

from tambola.errors import InvalidPayload
from tambola.services.game.calls import CallEngine

ALL = set(range(1, 91))


def _assert_partition(engine):
    called = set(engine.called)
    assert called | engine.available == ALL
    assert not called & engine.available
    assert engine.called == sorted(engine.called)


def test_draws_keep_partition_and_order():
    engine = CallEngine(random.Random(3))
    drawn = []
    for _ in range(30):
        drawn.append(engine.draw())
        _assert_partition(engine)
    assert engine.history == drawn
    assert engine.last == drawn[-1]
    assert len(set(drawn)) == 30


def test_draw_returns_none_once_exhausted():
    engine = CallEngine(random.Random(3))
    drawn = {engine.draw() for _ in range(90)}
    assert drawn == ALL
    assert engine.exhausted
    assert engine.draw() is None
    _assert_partition(engine)


def test_toggle_moves_number_both_ways():
    engine = CallEngine(random.Random(3))
    assert engine.toggle(17) is True
    assert 17 in engine.called
    _assert_partition(engine)
    assert engine.toggle(17) is False
    assert 17 in engine.available
    assert 17 not in engine.history
    _assert_partition(engine)


@pytest.mark.parametrize('bad', [0, 91, -3, '5', 5.0, True, None])
def test_toggle_rejects_values_outside_range(bad):
    engine = CallEngine()
    with pytest.raises(InvalidPayload):
        engine.toggle(bad)
    _assert_partition(engine)


def test_reset_restores_full_range():
    engine = CallEngine(random.Random(3))
    for _ in range(10):
        engine.draw()
    engine.toggle(engine.called[0])
    engine.reset()
    assert engine.called == []
    assert engine.history == []
    assert engine.last is None
    _assert_partition(engine)
