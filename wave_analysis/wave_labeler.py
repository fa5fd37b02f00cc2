"""
Wave Labeler
Assigns Elliott labels to the legs between consecutive pivots and keeps
only the most recent cycle in a bounded ring buffer.
"""

import logging
from collections import deque
from typing import Dict, Iterator, List, Optional, Sequence

import numpy as np

from .models import (
    Direction, FibRatio, Pivot, PriceBar, SubwaveEstimate, Wave, WaveKind,
    WaveLabel, WaveStatistics,
)

logger = logging.getLogger(__name__)

FIB_LEVELS = [0.236, 0.382, 0.5, 0.618, 0.786, 1.0, 1.272, 1.618, 2.0, 2.618]

# Label used when a leg moves against the expected label's direction.
# Every entry flips the canonical direction, so labels always agree with
# the leg they name.
FALLBACK_LABELS: Dict[WaveLabel, WaveLabel] = {
    # up-leg where a down label was expected
    WaveLabel.TWO: WaveLabel.THREE,
    WaveLabel.FOUR: WaveLabel.FIVE,
    WaveLabel.A: WaveLabel.B,
    WaveLabel.C: WaveLabel.B,
    # down-leg where an up label was expected
    WaveLabel.ONE: WaveLabel.C,
    WaveLabel.THREE: WaveLabel.FOUR,
    WaveLabel.FIVE: WaveLabel.A,
    WaveLabel.B: WaveLabel.C,
}


def closest_fib_ratio(ratio: float) -> FibRatio:
    """Snap a leg-to-leg ratio to the nearest common Fibonacci ratio."""
    closest = min(FIB_LEVELS, key=lambda fib: abs(ratio - fib))
    accuracy = max(0, round((1 - abs(ratio - closest) / closest) * 100))
    return FibRatio(ratio=round(ratio, 3), closest_fib=closest, accuracy=accuracy)


class WaveCycle:
    """
    Ring buffer holding the legs of the current cycle (at most `capacity`).
    Appending wave 1 after a finished correction (C) closes the cycle;
    closed or evicted legs move to `history`.
    """
    def __init__(self, capacity: int = 8):
        self.capacity = capacity
        self._waves: deque = deque(maxlen=capacity)
        self.history: List[Wave] = []

    def append(self, wave: Wave):
        if self._waves and wave.label is WaveLabel.ONE and self._waves[-1].label is WaveLabel.C:
            self.history.extend(self._waves)
            self._waves.clear()
        elif len(self._waves) == self.capacity:
            self.history.append(self._waves[0])
        self._waves.append(wave)

    @property
    def waves(self) -> List[Wave]:
        return list(self._waves)

    @property
    def last(self) -> Optional[Wave]:
        return self._waves[-1] if self._waves else None

    def find(self, label: WaveLabel) -> Optional[Wave]:
        """Most recent leg carrying `label`, if any."""
        for wave in reversed(self._waves):
            if wave.label is label:
                return wave
        return None

    def labels(self) -> List[WaveLabel]:
        return [w.label for w in self._waves]

    def __len__(self) -> int:
        return len(self._waves)

    def __iter__(self) -> Iterator[Wave]:
        return iter(list(self._waves))

    def __bool__(self) -> bool:
        return bool(self._waves)

    def __repr__(self) -> str:
        return f"WaveCycle({'-'.join(str(label) for label in self.labels())})"


class WaveLabeler:
    """
    Walks the pivot legs along the 1-2-3-4-5-A-B-C ring.

    Uptrends are anchored at the lowest pivot and enter the ring at wave 1;
    downtrends are anchored at the highest pivot and enter at wave A.
    """
    def __init__(self, config: Dict):
        self.config = config
        self.max_waves = config.get('max_cycle_waves', 8)
        logger.info(f"Initialized WaveLabeler with cycle capacity {self.max_waves}")

    @staticmethod
    def reorganize_pivots(pivots: Sequence[Pivot], uptrend: bool) -> List[Pivot]:
        """Drop the pivots before the lowest (uptrend) or highest (downtrend) one."""
        prices = [p.price for p in pivots]
        anchor = int(np.argmin(prices)) if uptrend else int(np.argmax(prices))
        return list(pivots[anchor:])

    def label_waves(self, pivots: Sequence[Pivot], implied_uptrend: Optional[bool] = None,
                    bars: Optional[Sequence[PriceBar]] = None) -> WaveCycle:
        """
        Label the legs between pivots.

        Args:
            pivots: Alternating pivots, oldest first
            implied_uptrend: Trend to anchor on; by default the last pivot
                above the first means uptrend
            bars: Price history, used for the default structure when the
                pivots cannot form a leg

        Returns:
            WaveCycle with the most recent cycle; discarded legs in `.history`
        """
        if len(pivots) < 2 or max(p.price for p in pivots) == min(p.price for p in pivots):
            return self.default_structure(bars, pivots)

        uptrend = implied_uptrend
        if uptrend is None:
            uptrend = pivots[-1].price > pivots[0].price

        organized = self.reorganize_pivots(pivots, uptrend)
        if len(organized) < 2:
            return self.default_structure(bars, pivots)

        cycle = WaveCycle(self.max_waves)
        expected = WaveLabel.ONE if uptrend else WaveLabel.A
        previous: Optional[Wave] = None

        for start, end in zip(organized, organized[1:]):
            direction = Direction.UP if end.price > start.price else Direction.DOWN
            label = expected if expected.direction is direction else FALLBACK_LABELS[expected]
            if label is not expected:
                logger.debug(f"{direction.value}-leg at index {end.index} contradicts wave {expected}, labeled {label}")

            fib_ratio = None
            if previous is not None and previous.magnitude > 0:
                fib_ratio = closest_fib_ratio(abs(end.price - start.price) / previous.magnitude)

            wave = Wave(
                label=label,
                kind=label.kind,
                direction=direction,
                start_price=start.price,
                end_price=end.price,
                start_index=start.index,
                end_index=end.index,
                start_date=start.date,
                end_date=end.date,
                change_percent=round((end.price - start.price) / start.price * 100, 2),
                duration=end.index - start.index,
                fib_ratio_to_prior_wave=fib_ratio,
            )
            cycle.append(wave)
            previous = wave
            expected = label.next()

        logger.debug(f"Labeled {cycle!r} from {len(organized)} pivots ({len(cycle.history)} legs discarded)")
        return cycle

    def default_structure(self, bars: Optional[Sequence[PriceBar]], pivots: Sequence[Pivot] = ()) -> WaveCycle:
        """A single wave 1 spanning the whole history, for degenerate input."""
        cycle = WaveCycle(self.max_waves)
        if bars:
            start_price, end_price = bars[0].close, bars[-1].close
            start_index, end_index = 0, len(bars) - 1
            start_date, end_date = bars[0].date, bars[-1].date
        elif pivots:
            start_price, end_price = pivots[0].price, pivots[-1].price
            start_index, end_index = pivots[0].index, pivots[-1].index
            start_date, end_date = pivots[0].date, pivots[-1].date
        else:
            logger.warning("No bars or pivots to build a default wave structure from")
            return cycle

        logger.warning("Not enough price movement to label waves, using default single-wave structure")
        cycle.append(Wave(
            label=WaveLabel.ONE,
            kind=WaveKind.IMPULSIVE,
            direction=Direction.UP if end_price >= start_price else Direction.DOWN,
            start_price=start_price,
            end_price=end_price,
            start_index=start_index,
            end_index=end_index,
            start_date=start_date,
            end_date=end_date,
            change_percent=round((end_price - start_price) / start_price * 100, 2),
            duration=end_index - start_index,
        ))
        return cycle

    @staticmethod
    def wave_statistics(cycle: WaveCycle) -> WaveStatistics:
        waves = cycle.waves
        if not waves:
            return WaveStatistics()

        changes = [w.abs_change for w in waves]
        durations = [w.duration for w in waves]
        impulsive = sum(1 for w in waves if w.kind is WaveKind.IMPULSIVE)
        return WaveStatistics(
            total_waves=len(waves),
            avg_change=round(float(np.mean(changes)), 2),
            max_change=round(max(changes), 2),
            min_change=round(min(changes), 2),
            avg_duration=int(round(float(np.mean(durations)))),
            impulse_waves=impulsive,
            corrective_waves=len(waves) - impulsive,
        )

    @staticmethod
    def estimate_subwaves(cycle: WaveCycle) -> List[SubwaveEstimate]:
        """
        Rough sub-wave count per leg: impulsive legs should hold 5 sub-waves,
        the others 3; a leg is assumed to fit one sub-wave per 5 bars.
        """
        estimates = []
        for wave in cycle:
            expected = 5 if wave.kind is WaveKind.IMPULSIVE else 3
            duration = wave.duration or 10
            estimates.append(SubwaveEstimate(
                label=wave.label,
                expected_subwaves=expected,
                estimated_subwaves=min(expected, duration // 5 + 1),
            ))
        return estimates
