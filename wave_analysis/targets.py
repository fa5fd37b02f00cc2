"""
Target/Stop Projector
Projects Fibonacci price levels, targets and a stop-loss for the wave
currently in progress. Falls back to fixed percentage levels when the legs
a projection needs have not formed yet.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .models import FibLevel, TargetSet, WaveLabel
from .wave_labeler import WaveCycle

logger = logging.getLogger(__name__)

# (target_up, target_down, stop_loss, fib_levels)
Projection = Tuple[float, float, float, List[FibLevel]]


def _retracements(end: float, move: float, ratios: List[float], name: str = 'retracement') -> List[FibLevel]:
    """Levels giving back `ratio` of a signed move that finished at `end`."""
    return [FibLevel(ratio=r, price=round(end - move * r, 2), label=f"{r * 100:.1f}% {name}") for r in ratios]


def _first_above(levels: List[FibLevel], price: float) -> float:
    above = [lv.price for lv in levels if lv.price > price]
    return min(above) if above else max(lv.price for lv in levels)


def _first_below(levels: List[FibLevel], price: float) -> float:
    below = [lv.price for lv in levels if lv.price < price]
    return max(below) if below else min(lv.price for lv in levels)


def risk_reward(target_up: float, current_price: float, stop_loss: float) -> Optional[float]:
    """Reward to target over risk to stop; None when the stop sits at the current price."""
    risk = current_price - stop_loss
    if risk == 0:
        return None
    return round((target_up - current_price) / risk, 2)


class TargetProjector:
    def __init__(self, config: Dict):
        self.config = config
        targets_config = config.get('targets', {})
        self.default_up_pct = targets_config.get('default_up_pct', 10.0)
        self.default_down_pct = targets_config.get('default_down_pct', 10.0)
        self.default_stop_pct = targets_config.get('default_stop_pct', 5.0)
        self._projectors: Dict[WaveLabel, Callable[[WaveCycle, float], Optional[Projection]]] = {
            WaveLabel.ONE: self._wave_1,
            WaveLabel.TWO: self._wave_2,
            WaveLabel.THREE: self._wave_3,
            WaveLabel.FOUR: self._wave_4,
            WaveLabel.FIVE: self._wave_5,
            WaveLabel.A: self._wave_a,
            WaveLabel.B: self._wave_b,
            WaveLabel.C: self._wave_c,
        }
        logger.info(f"Initialized TargetProjector with defaults +{self.default_up_pct}% / -{self.default_down_pct}%, stop -{self.default_stop_pct}%")

    def project_targets(self, cycle: WaveCycle, current_wave: WaveLabel, current_price: float) -> TargetSet:
        """
        Compute targets for the wave in progress.

        Args:
            cycle: Labeled waves of the current cycle
            current_wave: Wave the price is believed to be in
            current_price: Latest price

        Returns:
            TargetSet; risk_reward is None when it is undefined
        """
        projection = self._projectors[current_wave](cycle, current_price)
        if projection is None:
            logger.debug(f"Legs for wave {current_wave} projection missing, using default levels")
            projection = (
                current_price * (1 + self.default_up_pct / 100),
                current_price * (1 - self.default_down_pct / 100),
                current_price * (1 - self.default_stop_pct / 100),
                [],
            )

        target_up, target_down, stop_loss, levels = projection
        return TargetSet(
            target_up=round(target_up, 2),
            target_down=round(target_down, 2),
            stop_loss=round(stop_loss, 2),
            fib_levels=levels,
            risk_reward=risk_reward(target_up, current_price, stop_loss),
        )

    # --- Impulse ---

    def _wave_1(self, cycle: WaveCycle, current_price: float) -> Optional[Projection]:
        w1 = cycle.find(WaveLabel.ONE)
        if w1 is None:
            return None
        move = w1.end_price - w1.start_price
        levels = _retracements(w1.end_price, move, [0.5, 0.618])
        return w1.end_price + abs(move) * 1.618, w1.end_price - move * 0.618, w1.start_price, levels

    def _wave_2(self, cycle: WaveCycle, current_price: float) -> Optional[Projection]:
        w1 = cycle.find(WaveLabel.ONE)
        if w1 is None:
            return None
        move = w1.end_price - w1.start_price
        levels = _retracements(w1.end_price, move, [0.382, 0.5, 0.618, 0.786])
        return current_price + abs(move) * 1.618, w1.end_price - move * 0.618, w1.start_price, levels

    def _wave_3(self, cycle: WaveCycle, current_price: float) -> Optional[Projection]:
        w1 = cycle.find(WaveLabel.ONE)
        if w1 is None:
            return None
        w2 = cycle.find(WaveLabel.TWO)
        move = w1.end_price - w1.start_price
        levels = [
            FibLevel(ratio=r, price=round(w1.start_price + move * r, 2), label=f"{r * 100:.1f}% extension")
            for r in (1.618, 2.0, 2.618)
        ]
        stop = w2.end_price if w2 else current_price * (1 - self.default_stop_pct / 100)
        return _first_above(levels, current_price), w1.end_price, stop, levels

    def _wave_4(self, cycle: WaveCycle, current_price: float) -> Optional[Projection]:
        w1 = cycle.find(WaveLabel.ONE)
        w3 = cycle.find(WaveLabel.THREE)
        if w1 is None or w3 is None:
            return None
        move = w3.end_price - w3.start_price
        levels = _retracements(w3.end_price, move, [0.236, 0.382, 0.5])
        return w3.end_price + abs(move) * 0.618, w3.end_price - move * 0.382, w1.end_price, levels

    def _wave_5(self, cycle: WaveCycle, current_price: float) -> Optional[Projection]:
        w1 = cycle.find(WaveLabel.ONE)
        w4 = cycle.find(WaveLabel.FOUR)
        if w1 is None or w4 is None:
            return None
        w1_size = abs(w1.end_price - w1.start_price)
        levels = [
            FibLevel(ratio=r, price=round(w4.end_price + w1_size * r, 2), label=f"wave 5 = {r:g} x wave 1")
            for r in (0.618, 1.0, 1.618)
        ]
        return _first_above(levels, current_price), w4.end_price, w4.end_price, levels

    # --- Correction ---

    def _wave_a(self, cycle: WaveCycle, current_price: float) -> Optional[Projection]:
        impulse = [w for w in cycle if w.label.position <= WaveLabel.FIVE.position]
        if not impulse:
            return None
        top = max(max(w.start_price, w.end_price) for w in impulse)
        bottom = min(min(w.start_price, w.end_price) for w in impulse)
        size = top - bottom
        if size == 0:
            return None
        levels = _retracements(top, size, [0.382, 0.5, 0.618])
        return current_price + size * 0.382, _first_below(levels, current_price), top, levels

    def _wave_b(self, cycle: WaveCycle, current_price: float) -> Optional[Projection]:
        wa = cycle.find(WaveLabel.A)
        if wa is None:
            return None
        move = wa.end_price - wa.start_price
        a_size = abs(move)
        # Bounce bands retrace the A decline; C targets extend below A's end
        levels = _retracements(wa.end_price, move, [0.382, 0.5, 0.618, 0.786], 'bounce')
        levels += [
            FibLevel(ratio=r, price=round(wa.end_price - a_size * r, 2), label=f"wave C = {r:g} x wave A")
            for r in (1.0, 1.618)
        ]
        return wa.end_price + a_size * 0.618, wa.end_price - a_size, wa.start_price, levels

    def _wave_c(self, cycle: WaveCycle, current_price: float) -> Optional[Projection]:
        wa = cycle.find(WaveLabel.A)
        wb = cycle.find(WaveLabel.B)
        if wa is None or wb is None:
            return None
        a_size = abs(wa.end_price - wa.start_price)
        levels = [
            FibLevel(ratio=r, price=round(wb.end_price - a_size * r, 2), label=f"wave C = {r:g} x wave A")
            for r in (1.0, 1.272, 1.618)
        ]
        return current_price + a_size * 0.382, _first_below(levels, current_price), wb.end_price, levels
