"""
Tests for Fibonacci targets, stops and risk/reward.
"""

import pytest

from wave_analysis.models import Pivot, PivotType, WaveLabel
from wave_analysis.targets import TargetProjector, risk_reward
from wave_analysis.wave_labeler import WaveCycle, WaveLabeler


def cycle_from(prices, labeler):
    pivots = []
    for i, price in enumerate(prices):
        rising_next = i + 1 < len(prices) and prices[i + 1] > price
        pivots.append(Pivot(type=PivotType.LOW if rising_next else PivotType.HIGH, price=price, index=i * 10))
    return labeler.label_waves(pivots)


@pytest.fixture
def projector(config):
    return TargetProjector(config)


@pytest.fixture
def labeler(config):
    return WaveLabeler(config)


def test_risk_reward():
    assert risk_reward(120, 100, 90) == 2.0
    assert risk_reward(120, 100, 100) is None, "Undefined when the stop is the current price"


def test_wave3_extension_targets(projector, labeler):
    """Wave 3 targets are extensions of wave 1 measured from its origin."""
    cycle = cycle_from([100, 150, 130], labeler)
    targets = projector.project_targets(cycle, WaveLabel.THREE, 170.0)

    assert [lv.price for lv in targets.fib_levels] == [180.9, 200.0, 230.9]
    assert targets.target_up == 180.9, "First extension above the current price"
    assert targets.target_down == 150.0
    assert targets.stop_loss == 130.0, "Stop at the end of wave 2"
    assert targets.risk_reward == 0.27


def test_wave2_retracement_levels(projector, labeler):
    cycle = cycle_from([100, 150, 130], labeler)
    targets = projector.project_targets(cycle, WaveLabel.TWO, 130.0)

    assert [lv.price for lv in targets.fib_levels] == [130.9, 125.0, 119.1, 110.7]
    assert targets.stop_loss == 100.0
    assert targets.target_up == 210.9


def test_default_levels_without_legs(projector):
    """Missing legs fall back to fixed percentages around the current price."""
    targets = projector.project_targets(WaveCycle(), WaveLabel.A, 100.0)

    assert targets.target_up == 110.0
    assert targets.target_down == 90.0
    assert targets.stop_loss == 95.0
    assert targets.fib_levels == []
    assert targets.risk_reward == 2.0


def test_undefined_risk_reward(projector, labeler):
    cycle = cycle_from([100, 150], labeler)
    targets = projector.project_targets(cycle, WaveLabel.ONE, 100.0)

    assert targets.stop_loss == 100.0
    assert targets.risk_reward is None


def test_wave_c_targets(projector, labeler):
    """Wave C projects below wave B, rebounds by 38.2% of A and stops at B's high."""
    cycle = cycle_from([200, 150, 180], labeler)
    assert cycle.labels() == [WaveLabel.A, WaveLabel.B]
    targets = projector.project_targets(cycle, WaveLabel.C, 170.0)

    assert [lv.price for lv in targets.fib_levels] == [130.0, 116.4, 99.1]
    assert targets.target_down == 130.0
    assert targets.stop_loss == 180.0
    assert targets.target_up == pytest.approx(189.1), "Rebound target is 38.2% of wave A above the price"
    # stop above the current price makes the long-side ratio negative
    assert targets.risk_reward == pytest.approx(-1.91)


def test_every_label_projects(projector, labeler):
    """Every label yields a target set for a full cycle."""
    cycle = cycle_from([100, 150, 130, 200, 180, 230, 190, 210], labeler)
    for label in WaveLabel.ring():
        targets = projector.project_targets(cycle, label, 200.0)
        assert targets.target_up > 0 and targets.target_down > 0 and targets.stop_loss > 0, f"Wave {label}"
