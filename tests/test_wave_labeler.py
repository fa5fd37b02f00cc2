"""
Tests for wave labeling along the 1-2-3-4-5-A-B-C ring.
"""

import pytest

from wave_analysis.models import Direction, Pivot, PivotType, Wave, WaveKind, WaveLabel
from wave_analysis.wave_labeler import WaveCycle, WaveLabeler, closest_fib_ratio


def pivots_from(prices, spacing=10):
    """Pivots alternating from the first move's direction, `spacing` bars apart."""
    pivots = []
    for i, price in enumerate(prices):
        if i + 1 < len(prices):
            kind = PivotType.LOW if prices[i + 1] > price else PivotType.HIGH
        else:
            kind = PivotType.HIGH if price > prices[i - 1] else PivotType.LOW
        pivots.append(Pivot(type=kind, price=price, index=i * spacing))
    return pivots


def make_wave(label, start, end, start_index=0, duration=10):
    return Wave(
        label=label,
        kind=label.kind,
        direction=Direction.UP if end > start else Direction.DOWN,
        start_price=start,
        end_price=end,
        start_index=start_index,
        end_index=start_index + duration,
        change_percent=round((end - start) / start * 100, 2),
        duration=duration,
    )


@pytest.fixture
def labeler(config):
    return WaveLabeler(config)


def test_label_ring():
    """The ring wraps from C back to 1 and carries kind and direction."""
    assert WaveLabel.C.next() is WaveLabel.ONE
    assert WaveLabel.FIVE.next() is WaveLabel.A
    assert [str(label) for label in WaveLabel.ring()] == ['1', '2', '3', '4', '5', 'A', 'B', 'C']
    assert WaveLabel.THREE.kind is WaveKind.IMPULSIVE
    assert WaveLabel.B.kind is WaveKind.COUNTER_TREND
    assert WaveLabel.A.kind is WaveKind.CORRECTIVE
    assert WaveLabel.B.direction is Direction.UP
    assert WaveLabel.C.direction is Direction.DOWN


def test_closest_fib_ratio():
    fib = closest_fib_ratio(0.6)
    assert fib.closest_fib == 0.618
    assert fib.ratio == 0.6
    assert fib.accuracy == 97

    far = closest_fib_ratio(10.0)
    assert far.closest_fib == 2.618
    assert far.accuracy == 0, "Accuracy never drops below zero"


def test_label_full_impulse(labeler):
    """Six alternating pivots in an uptrend give waves 1 through 5."""
    cycle = labeler.label_waves(pivots_from([100, 150, 130, 200, 180, 230]))

    assert cycle.labels() == [WaveLabel.ONE, WaveLabel.TWO, WaveLabel.THREE, WaveLabel.FOUR, WaveLabel.FIVE]
    w1, w2 = cycle.waves[0], cycle.waves[1]
    assert w1.change_percent == 50.0
    assert w1.direction is Direction.UP and w2.direction is Direction.DOWN
    assert w1.fib_ratio_to_prior_wave is None
    assert w2.fib_ratio_to_prior_wave.closest_fib == 0.382, "Wave 2 retraced 40% of wave 1"
    for wave in cycle:
        assert wave.direction is wave.label.direction, f"Wave {wave.label} moves against its label"


def test_uptrend_anchors_at_lowest_pivot(labeler):
    """Pivots before the lowest one are dropped in an uptrend."""
    cycle = labeler.label_waves(pivots_from([120, 100, 150, 130]))

    assert cycle.labels() == [WaveLabel.ONE, WaveLabel.TWO]
    assert cycle.waves[0].start_price == 100


def test_downtrend_enters_at_wave_a(labeler):
    """A downtrend is anchored at the highest pivot and starts at wave A."""
    cycle = labeler.label_waves(pivots_from([200, 150, 180, 120]))

    assert cycle.labels() == [WaveLabel.A, WaveLabel.B, WaveLabel.C]
    assert cycle.waves[0].start_price == 200


def test_implied_trend_overrides_default(labeler):
    """An explicit uptrend anchors at the lowest pivot even when price ended lower."""
    pivots = pivots_from([200, 100, 150, 120])
    assert labeler.label_waves(pivots).labels() == [WaveLabel.A, WaveLabel.B, WaveLabel.C]

    cycle = labeler.label_waves(pivots, implied_uptrend=True)
    assert cycle.labels() == [WaveLabel.ONE, WaveLabel.TWO]
    assert cycle.waves[0].start_price == 100


def test_fallback_label_for_contrary_leg(labeler):
    """An up-leg where wave 2 was expected is labeled wave 3."""
    pivots = [
        Pivot(type=PivotType.LOW, price=100, index=0),
        Pivot(type=PivotType.HIGH, price=150, index=10),
        Pivot(type=PivotType.HIGH, price=170, index=20),
    ]
    cycle = labeler.label_waves(pivots)
    assert cycle.labels() == [WaveLabel.ONE, WaveLabel.THREE]


def test_new_cycle_after_wave_c(labeler):
    """Wave 1 after a completed C starts a new cycle; the old legs move to history."""
    prices = [100, 150, 130, 200, 180, 230, 190, 210, 170, 220]
    cycle = labeler.label_waves(pivots_from(prices))

    assert cycle.labels() == [WaveLabel.ONE]
    assert len(cycle.history) == 8
    assert [w.label for w in cycle.history][-1] is WaveLabel.C
    assert cycle.last.start_price == 170


def test_cycle_capacity_evicts_oldest():
    cycle = WaveCycle(capacity=3)
    waves = [
        make_wave(WaveLabel.ONE, 100, 150),
        make_wave(WaveLabel.TWO, 150, 130),
        make_wave(WaveLabel.THREE, 130, 200),
        make_wave(WaveLabel.FOUR, 200, 180),
    ]
    for wave in waves:
        cycle.append(wave)

    assert len(cycle) == 3
    assert cycle.labels() == [WaveLabel.TWO, WaveLabel.THREE, WaveLabel.FOUR]
    assert cycle.history == [waves[0]]
    assert repr(cycle) == "WaveCycle(2-3-4)"


def test_cycle_find_returns_most_recent():
    cycle = WaveCycle()
    assert not cycle
    assert cycle.find(WaveLabel.ONE) is None
    assert cycle.last is None

    cycle.append(make_wave(WaveLabel.B, 100, 120))
    cycle.append(make_wave(WaveLabel.C, 120, 90))
    cycle.append(make_wave(WaveLabel.B, 90, 110))
    assert cycle.find(WaveLabel.B).start_price == 90


def test_default_structure(labeler, make_bars):
    """Too few pivots fall back to one wave 1 over the whole history."""
    bars = make_bars([100, 101, 102, 103])
    cycle = labeler.label_waves([Pivot(type=PivotType.LOW, price=100, index=0)], bars=bars)

    assert cycle.labels() == [WaveLabel.ONE]
    wave = cycle.last
    assert (wave.start_index, wave.end_index) == (0, 3)
    assert wave.change_percent == 3.0

    assert len(labeler.label_waves([])) == 0


def test_wave_statistics_and_subwaves(labeler):
    pivots = [
        Pivot(type=PivotType.LOW, price=100, index=0),
        Pivot(type=PivotType.HIGH, price=150, index=20),
        Pivot(type=PivotType.LOW, price=130, index=30),
    ]
    cycle = labeler.label_waves(pivots)

    stats = labeler.wave_statistics(cycle)
    assert stats.total_waves == 2
    assert stats.impulse_waves == 1 and stats.corrective_waves == 1
    assert stats.max_change == 50.0
    assert stats.min_change == 13.33
    assert stats.avg_duration == 15

    subwaves = labeler.estimate_subwaves(cycle)
    assert [(s.expected_subwaves, s.estimated_subwaves) for s in subwaves] == [(5, 5), (3, 3)]
    assert labeler.wave_statistics(WaveCycle()).total_waves == 0
