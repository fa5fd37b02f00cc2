"""
Pivot Detector
Reduces a price series to alternating swing highs and lows (a dynamic
ZigZag). The reversal threshold scales with the series' total range so
that ordinary noise in a volatile stock is not read as a structural turn.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.signal import find_peaks

from .indicators import TechnicalIndicators
from .models import Pivot, PivotType, PriceBar

logger = logging.getLogger(__name__)


def price_arrays(bars: Sequence[PriceBar]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Returns (closes, highs, lows) as float arrays."""
    closes = np.array([b.close for b in bars], dtype=float)
    highs = np.array([b.high for b in bars], dtype=float)
    lows = np.array([b.low for b in bars], dtype=float)
    return closes, highs, lows


def total_range_percent(bars: Sequence[PriceBar]) -> float:
    """Highest close vs lowest close over the whole window, in percent."""
    if not bars:
        return 0.0
    closes = np.array([b.close for b in bars], dtype=float)
    low = closes.min()
    return float((closes.max() - low) / low * 100)


class PivotDetector:
    """
    Finds confirmed pivots with a ZigZag whose threshold is chosen from the
    series' volatility, and the coarser major/weekly pivots used to
    cross-check a wave count.
    """
    def __init__(self, config: Dict):
        self.config = config
        self.base_threshold = config.get('base_zigzag_threshold', 5.0)
        self.tiers = sorted(
            (tuple(t) for t in config.get('zigzag_threshold_tiers', [])),
            key=lambda t: t[0],
            reverse=True,
        )
        self.min_pivots = config.get('min_pivots', 4)
        self.retry_factor = config.get('pivot_retry_factor', 0.6)
        self.max_retries = config.get('pivot_max_retries', 3)
        self.min_threshold = config.get('min_zigzag_threshold', 3.0)
        self.atr_period = config.get('atr_period', 14)
        logger.info(f"Initialized PivotDetector with base threshold={self.base_threshold}%, tiers={self.tiers}, min_pivots={self.min_pivots}")

    # --- Threshold selection ---

    def effective_threshold(self, bars: Sequence[PriceBar], base_threshold: Optional[float] = None) -> float:
        """
        Reversal threshold (%) for a series. Wider total ranges map to larger
        thresholds; the result never drops below the base threshold.
        """
        base = self.base_threshold if base_threshold is None else base_threshold
        total = total_range_percent(bars)
        for lower_bound, threshold in self.tiers:
            if total > lower_bound:
                return max(base, threshold)
        return base

    def dynamic_threshold(self, bars: Sequence[PriceBar]) -> Tuple[float, str, float]:
        """Returns (threshold, reason, total range %) for the configured base."""
        total = total_range_percent(bars)
        threshold = self.effective_threshold(bars)
        if threshold == self.base_threshold:
            reason = f"total range {total:.0f}% within base band"
        else:
            reason = f"total range {total:.0f}% widened threshold to {threshold:.1f}%"
        return threshold, reason, total

    def _retry_floor(self, bars: Sequence[PriceBar]) -> float:
        """A retry never goes below the typical daily true range."""
        closes, highs, lows = price_arrays(bars)
        atr = TechnicalIndicators.atr(highs, lows, closes, self.atr_period)
        atr_pct = atr / closes[-1] * 100 if closes[-1] > 0 else 0.0
        return max(self.min_threshold, atr_pct)

    # --- ZigZag ---

    def find_pivots(self, bars: Sequence[PriceBar], base_threshold: Optional[float] = None,
                    scale: float = 1.0) -> List[Pivot]:
        """
        Find alternating pivots using the effective threshold, retrying with
        a proportionally smaller threshold when too few pivots come out.

        Args:
            bars: Price bars, oldest first
            base_threshold: Threshold (%) used for calm series
            scale: Multiplier on the effective threshold (per-view tuning)

        Returns:
            Alternating pivots; the trailing leg up to the last bar is always
            included as provisional pivots. Empty if price never moved by the
            threshold.
        """
        if len(bars) < 2:
            return []

        threshold = self.effective_threshold(bars, base_threshold) * scale
        floor = self._retry_floor(bars)
        pivots = self._zigzag(bars, threshold)

        for attempt in range(self.max_retries):
            if len(pivots) >= self.min_pivots or threshold <= floor:
                break
            threshold = max(floor, threshold * self.retry_factor)
            logger.debug(f"Only {len(pivots)} pivots, retry {attempt + 1} with threshold {threshold:.2f}%")
            pivots = self._zigzag(bars, threshold)

        logger.debug(f"Found {len(pivots)} pivots at threshold {threshold:.2f}%")
        return pivots

    def _zigzag(self, bars: Sequence[PriceBar], threshold: float) -> List[Pivot]:
        closes, highs, lows = price_arrays(bars)
        up_factor = 1 + threshold / 100
        down_factor = 1 - threshold / 100

        pivots: List[Pivot] = []
        trend = None
        # Before a trend exists, track both extremes since the start
        min_price, min_idx = lows[0], 0
        max_price, max_idx = highs[0], 0
        extreme_price, extreme_idx = closes[0], 0

        def pivot_at(kind: PivotType, price: float, idx: int, provisional: bool = False) -> Pivot:
            return Pivot(type=kind, price=float(price), index=idx, date=bars[idx].date, provisional=provisional)

        for i in range(1, len(bars)):
            close = closes[i]
            if trend is None:
                if lows[i] < min_price:
                    min_price, min_idx = lows[i], i
                if highs[i] > max_price:
                    max_price, max_idx = highs[i], i
                if close > min_price * up_factor:
                    pivots.append(pivot_at(PivotType.LOW, min_price, min_idx))
                    trend = 'up'
                    extreme_price, extreme_idx = max(highs[min_idx:i + 1]), min_idx + int(np.argmax(highs[min_idx:i + 1]))
                elif close < max_price * down_factor:
                    pivots.append(pivot_at(PivotType.HIGH, max_price, max_idx))
                    trend = 'down'
                    extreme_price, extreme_idx = min(lows[max_idx:i + 1]), max_idx + int(np.argmin(lows[max_idx:i + 1]))
            elif trend == 'up':
                if highs[i] > extreme_price:
                    extreme_price, extreme_idx = highs[i], i
                if close < extreme_price * down_factor:
                    pivots.append(pivot_at(PivotType.HIGH, extreme_price, extreme_idx))
                    trend = 'down'
                    extreme_price, extreme_idx = lows[i], i
            else:
                if lows[i] < extreme_price:
                    extreme_price, extreme_idx = lows[i], i
                if close > extreme_price * up_factor:
                    pivots.append(pivot_at(PivotType.LOW, extreme_price, extreme_idx))
                    trend = 'up'
                    extreme_price, extreme_idx = highs[i], i

        if trend is None:
            return pivots

        # Trailing partial leg: the running extreme, then "now"
        last_idx = len(bars) - 1
        if trend == 'up':
            pivots.append(pivot_at(PivotType.HIGH, extreme_price, extreme_idx, provisional=True))
            if extreme_idx < last_idx and closes[-1] < extreme_price:
                pivots.append(pivot_at(PivotType.LOW, closes[-1], last_idx, provisional=True))
        else:
            pivots.append(pivot_at(PivotType.LOW, extreme_price, extreme_idx, provisional=True))
            if extreme_idx < last_idx and closes[-1] > extreme_price:
                pivots.append(pivot_at(PivotType.HIGH, closes[-1], last_idx, provisional=True))
        return pivots

    # --- Major / weekly pivots ---

    @staticmethod
    def aggregate_to_weekly(bars: Sequence[PriceBar]) -> List[PriceBar]:
        """
        Aggregate daily bars into Sunday-anchored weekly bars
        (open first, high max, low min, close last, volume sum).
        """
        if not bars:
            return []

        df = pd.DataFrame([b.model_dump() for b in bars])
        df['date'] = pd.to_datetime(df['date'])
        week_start = df['date'] - pd.to_timedelta((df['date'].dt.dayofweek + 1) % 7, unit='D')

        weekly = df.groupby(week_start, sort=True).agg(
            open=('open', 'first'),
            high=('high', 'max'),
            low=('low', 'min'),
            close=('close', 'last'),
            volume=('volume', 'sum'),
            date=('date', 'last'),
        )
        return [
            PriceBar(
                date=row.date.date(),
                open=row.open,
                high=row.high,
                low=row.low,
                close=row.close,
                volume=row.volume,
            )
            for row in weekly.itertuples(index=False)
        ]

    @staticmethod
    def find_major_pivots(bars: Sequence[PriceBar], threshold: float, replace_extremes: bool = True) -> List[Pivot]:
        """
        Alternating local extrema (a bar whose high/low beats both neighbours)
        at least `threshold`% apart. With `replace_extremes`, a more extreme
        same-type extremum replaces the previous pivot.
        """
        if len(bars) < 3:
            return []

        _, highs, lows = price_arrays(bars)
        peaks, _ = find_peaks(highs)
        troughs, _ = find_peaks(-lows)
        peak_set, trough_set = set(peaks.tolist()), set(troughs.tolist())

        pivots: List[Pivot] = []

        def register(kind: PivotType, price: float, idx: int):
            last = pivots[-1] if pivots else None
            candidate = Pivot(type=kind, price=float(price), index=idx, date=bars[idx].date)
            if last is None or last.type != kind:
                change = abs((price - last.price) / last.price * 100) if last else threshold
                if change >= threshold:
                    pivots.append(candidate)
            elif replace_extremes:
                more_extreme = price > last.price if kind is PivotType.HIGH else price < last.price
                if more_extreme:
                    pivots[-1] = candidate

        for idx in sorted(peak_set | trough_set):
            if idx in peak_set:
                register(PivotType.HIGH, highs[idx], idx)
            if idx in trough_set:
                register(PivotType.LOW, lows[idx], idx)
        return pivots

    def find_weekly_pivots(self, bars: Sequence[PriceBar], threshold: float) -> List[Pivot]:
        weekly = self.aggregate_to_weekly(bars)
        if len(weekly) < 3:
            return []
        return self.find_major_pivots(weekly, threshold, replace_extremes=False)
