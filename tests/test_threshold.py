import pytest

from marker_locator.threshold import ThresholdController


def test_initial_block_size_is_odd_midpoint():
    assert ThresholdController(3, 21).block_size == 13
    assert ThresholdController(5, 9).block_size == 7
    assert ThresholdController(3, 7).block_size == 5
    assert ThresholdController(3, 3).block_size == 3


def test_no_candidates_advances_and_wraps():
    ctl = ThresholdController(3, 7)
    assert ctl.update(0) == 7
    assert ctl.update(0) == 3
    assert ctl.update(0) == 5


def test_candidates_found_keeps_block_size():
    ctl = ThresholdController(3, 21)
    ctl.update(0)
    assert ctl.update(2) == 15
    assert ctl.block_size == 15


@pytest.mark.parametrize("bounds", [(3, 21), (5, 9), (3, 3), (11, 31)])
def test_block_size_stays_odd_and_in_range(bounds):
    ctl = ThresholdController(*bounds)
    for _ in range(50):
        size = ctl.update(0)
        assert bounds[0] <= size <= bounds[1]
        assert size % 2 == 1


def test_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        ThresholdController(21, 3)


def test_nudge_moves_block_size_within_bounds():
    ctl = ThresholdController(3, 7)
    assert ctl.nudge(2) == 7
    assert ctl.nudge(2) == 7
    assert ctl.nudge(-2) == 5
    assert ctl.nudge(-2) == 3
    assert ctl.nudge(-2) == 3


def test_nudge_keeps_block_size_odd():
    ctl = ThresholdController(3, 21)
    assert ctl.nudge(1) == 15
    assert ctl.nudge(100) == 21
    assert ctl.nudge(-1) == 21
    assert ctl.nudge(-100) == 3
