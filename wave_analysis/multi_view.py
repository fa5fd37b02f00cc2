"""
Multi-View Synthesizer
Reads the wave position from three trailing windows (short, mid and long
term), reconciles them on the label ring and adjusts the conclusion with
divergence and a weekly cross-check.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .divergence import DivergenceDetector
from .models import (
    DivergenceResult, DivergenceType, MultiViewBreakdown, PriceBar,
    TimeframeView, WaveKind, WaveLabel,
)
from .pivot_detector import PivotDetector
from .wave_labeler import WaveLabeler

logger = logging.getLogger(__name__)

RING_SIZE = len(WaveLabel.ring())

VIEW_NAMES = {
    'short': 'short-term',
    'mid': 'mid-term',
    'long': 'long-term',
}


def unwrap_positions(positions: Sequence[int], ring_size: int = RING_SIZE) -> List[int]:
    """
    Shift ring positions so they lie as close together as possible,
    e.g. C (7) and 1 (0) become 7 and 8. Ties keep the unshifted reading.
    """
    best, best_spread = list(positions), max(positions) - min(positions)
    for offset in range(1, ring_size):
        shifted = [(p - offset) % ring_size + offset for p in positions]
        spread = max(shifted) - min(shifted)
        if spread < best_spread:
            best, best_spread = shifted, spread
    return best


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def price_metrics(closes: np.ndarray, current_price: float) -> Tuple[float, float, float]:
    """(position in range %, gain from low %, pullback from high %)"""
    high, low = float(closes.max()), float(closes.min())
    position = (current_price - low) / (high - low) * 100 if high > low else 50.0
    gain_from_low = (current_price - low) / low * 100
    pullback_from_high = (high - current_price) / high * 100
    return position, gain_from_low, pullback_from_high


class MultiViewSynthesizer:
    def __init__(self, config: Dict, detector: PivotDetector, labeler: WaveLabeler,
                 divergence_detector: Optional[DivergenceDetector] = None):
        self.config = config
        self.detector = detector
        self.labeler = labeler
        self.divergence_detector = divergence_detector or DivergenceDetector(config)

        mv = config.get('multi_view', {})
        self.windows = mv.get('windows', {
            'short': {'bars': 130, 'threshold_scale': 0.8},
            'mid': {'bars': 195, 'threshold_scale': 1.0},
            'long': {'bars': 260, 'threshold_scale': 1.2},
        })
        self.min_window_bars = mv.get('min_window_bars', 10)
        self.high_confidence = mv.get('high_consensus_confidence', 85)
        self.medium_confidence = mv.get('medium_consensus_confidence', 70)
        self.low_confidence = mv.get('low_consensus_confidence', 55)
        self.deep_pullback_pct = mv.get('deep_pullback_pct', 25.0)
        self.bounce_pullback_pct = mv.get('bounce_pullback_pct', 30.0)
        self.near_high_pct = mv.get('near_high_pct', 5.0)
        self.top_position_pct = mv.get('top_position_pct', 85.0)
        self.extended_gain_pct = mv.get('extended_gain_pct', 200.0)
        self.divergence_penalty = mv.get('divergence_penalty', 5)
        self.divergence_floor = mv.get('divergence_confidence_floor', 60)
        self.weekly_min_wave_count = mv.get('weekly_min_wave_count', 2)
        self.weekly_penalty = mv.get('weekly_penalty', 10)
        self.weekly_floor = mv.get('weekly_confidence_floor', 50)
        logger.info(f"Initialized MultiViewSynthesizer with windows {self.windows}")

    # --- Single view ---

    def analyze_view(self, bars: Sequence[PriceBar], current_price: float, base_threshold: float,
                     scale: float, label: str) -> TimeframeView:
        """
        Provisional wave for one window: the label of the leg in progress,
        corrected by where the current price sits in the window's range.
        """
        closes = np.array([b.close for b in bars], dtype=float)
        if len(bars) < self.min_window_bars:
            return TimeframeView(label=label, bars=len(bars), threshold=0.0, wave=WaveLabel.ONE,
                                 reason=f"{label}: insufficient data")
        if closes.max() == closes.min():
            return TimeframeView(label=label, bars=len(bars), threshold=0.0, wave=WaveLabel.ONE,
                                 reason=f"{label}: no price movement")

        threshold = self.detector.effective_threshold(bars, base_threshold) * scale
        pivots = self.detector.find_pivots(bars, base_threshold, scale=scale)
        cycle = self.labeler.label_waves(pivots, bars=bars)
        major_count = len(self.detector.find_major_pivots(bars, threshold))

        position, gain, pullback = price_metrics(closes, current_price)
        wave_count = max(1, major_count - 1, len(cycle) + len(cycle.history))
        wave, note = self._read_view(cycle.last.label if cycle else WaveLabel.ONE,
                                     wave_count, position, gain, pullback)

        reason = (f"{label}: wave {wave}{note} (price at {position:.0f}% of range, "
                  f"+{gain:.0f}% from low, -{pullback:.0f}% from high, {major_count} major pivots)")
        return TimeframeView(
            label=label,
            bars=len(bars),
            threshold=round(threshold, 2),
            wave=wave,
            reason=reason,
            pivot_count=len(pivots),
            price_position=round(position, 1),
            gain_from_low=round(gain, 2),
            pullback_from_high=round(pullback, 2),
        )

    def _at_high(self, position: float, pullback: float) -> bool:
        return position >= self.top_position_pct and pullback < self.near_high_pct

    def _read_view(self, leg: WaveLabel, wave_count: int, position: float,
                   gain: float, pullback: float) -> Tuple[WaveLabel, str]:
        """
        Combine the label of the leg in progress with the window's wave count
        and price measures. Price at the top of the range is an advance in
        progress whatever the last leg was labeled.
        """
        if self._at_high(position, pullback):
            if wave_count <= 2:
                return WaveLabel.ONE, ', initial advance at the high'
            if leg is WaveLabel.FIVE or gain >= self.extended_gain_pct:
                return WaveLabel.FIVE, f', late advance after +{gain:.0f}%'
            return WaveLabel.THREE, ', main advance at the high'
        if leg is WaveLabel.THREE and pullback >= self.deep_pullback_pct:
            return WaveLabel.FOUR, ', deep pullback'
        if leg.kind is WaveKind.IMPULSIVE and pullback >= self.bounce_pullback_pct:
            return WaveLabel.B, ', bounce far below the high'
        return leg, ''

    # --- Synthesis ---

    def synthesize(self, history: Sequence[PriceBar], current_price: float,
                   base_threshold: Optional[float] = None,
                   divergence: Optional[DivergenceResult] = None) -> MultiViewBreakdown:
        """
        Reconcile the short, mid and long views into one wave reading.

        Args:
            history: Full price history, oldest first
            current_price: Price to position within each window
            base_threshold: ZigZag base threshold (%); configured base if None
            divergence: Precomputed divergence; detected here if None

        Returns:
            MultiViewBreakdown with the per-view detail and the conclusion
        """
        if base_threshold is None:
            base_threshold = self.detector.base_threshold
        if divergence is None:
            divergence = self.divergence_detector.detect_divergence(history)

        views = {}
        for key in ('short', 'mid', 'long'):
            window = self.windows.get(key, {})
            length = min(window.get('bars', len(history)), len(history))
            views[key] = self.analyze_view(
                history[-length:], current_price, base_threshold,
                window.get('threshold_scale', 1.0), VIEW_NAMES[key],
            )
            logger.debug(views[key].reason)

        short, mid, long_ = views['short'], views['mid'], views['long']
        unwrapped = unwrap_positions([short.wave.position, mid.wave.position, long_.wave.position])
        spread = max(unwrapped) - min(unwrapped)

        if spread <= 1:
            consensus = 'high'
            wave = WaveLabel.at(round_half_up(sum(unwrapped) / 3))
            confidence = self.high_confidence
            reason = f"short, mid and long views agree on wave {wave}"
            suggestion = self._aligned_suggestion(wave)
        elif spread <= 2:
            consensus = 'medium'
            wave = WaveLabel.at(sorted(unwrapped)[1])
            confidence = self.medium_confidence
            if unwrapped[0] > unwrapped[2]:
                reason = f"short-term wave {short.wave}, long-term wave {long_.wave}: short-term leads"
                suggestion = "short-term is stronger, mind the long-term position"
            elif unwrapped[2] > unwrapped[0]:
                reason = f"short-term wave {short.wave}, long-term wave {long_.wave}: long-term leads"
                suggestion = "possibly an extension of a larger cycle"
            else:
                reason = f"views differ, leaning to wave {wave}"
                suggestion = "views differ, consider waiting"
        else:
            consensus = 'low'
            wave = WaveLabel.at(round_half_up(sum(unwrapped) / 3))
            confidence = self.low_confidence
            reason = f"short ({short.wave}), mid ({mid.wave}) and long ({long_.wave}) disagree, structure unclear"
            suggestion = "wave structure unclear, wait or confirm with other indicators"

        closes = np.array([b.close for b in history], dtype=float)
        position, _, pullback = price_metrics(closes, current_price)
        if self._at_high(position, pullback) and wave.kind is not WaveKind.IMPULSIVE:
            advances = [v.wave for v in (short, mid, long_) if v.wave.kind is WaveKind.IMPULSIVE]
            stepped = max(advances, key=lambda w: w.position) if advances else WaveLabel.THREE
            reason += f", price at the high of its range so wave {wave} is read as wave {stepped}"
            wave = stepped
            if consensus == 'high':
                suggestion = self._aligned_suggestion(wave)

        if divergence.type is DivergenceType.BEARISH and wave.is_advanced:
            reason += ", bearish RSI divergence (possible wave 5 exhaustion)"
            suggestion += ", watch for a pullback"
            confidence = min(confidence, max(self.divergence_floor, confidence - self.divergence_penalty))
        if divergence.type is DivergenceType.BULLISH and wave in (WaveLabel.FOUR, WaveLabel.A, WaveLabel.C):
            reason += ", bullish RSI divergence"
            suggestion += ", a rebound may be near"
        if pullback < self.near_high_pct and wave.is_advanced:
            suggestion += ", near the high so stay cautious"
        if pullback > self.deep_pullback_pct and wave is WaveLabel.THREE:
            wave = WaveLabel.FOUR
            reason = f"deep pullback of {pullback:.0f}% from the high, read as wave 4"

        threshold, threshold_reason, _ = self.detector.dynamic_threshold(history)
        major_count = max(1, len(self.detector.find_major_pivots(history, threshold)) - 1)
        weekly_count = max(1, len(self.detector.find_weekly_pivots(history, threshold)) - 1)
        logger.debug(f"Weekly cross-check at {threshold}% ({threshold_reason}): {weekly_count} weekly waves, {major_count} major waves")

        if weekly_count <= self.weekly_min_wave_count and wave in (WaveLabel.FOUR, WaveLabel.FIVE):
            confidence = min(confidence, max(self.weekly_floor, confidence - self.weekly_penalty))
            reason += f" (weekly chart shows only {weekly_count} waves)"
            if weekly_count <= 1:
                stepped = WaveLabel.THREE if wave is WaveLabel.FIVE else WaveLabel.TWO
                reason += f", stepped back from wave {wave} to wave {stepped}"
                wave = stepped

        logger.info(f"Multi-view conclusion: wave {wave} ({consensus} consensus, confidence {confidence}) - {reason}")
        return MultiViewBreakdown(
            short_term=short,
            mid_term=mid,
            long_term=long_,
            consensus=consensus,
            spread=spread,
            wave=wave,
            confidence=confidence,
            reason=reason,
            suggestion=suggestion,
            weekly_wave_count=weekly_count,
            major_wave_count=major_count,
            dynamic_threshold=threshold,
        )

    @staticmethod
    def _aligned_suggestion(wave: WaveLabel) -> str:
        if wave is WaveLabel.THREE:
            return "all views aligned on the main advance, hold"
        if wave is WaveLabel.FIVE:
            return "all views point to a late stage, trade cautiously"
        if wave in (WaveLabel.ONE, WaveLabel.TWO):
            return "early stage, consider building a position"
        return "correction in progress, wait for an opportunity"
