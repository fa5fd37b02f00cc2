"""
Divergence Detector
Bearish divergence: price makes a new high while RSI fails to confirm it,
a typical sign of an exhausted fifth wave. Bullish divergence is the
mirror image at lows and often marks the end of a correction.
"""

import logging
from typing import Dict, Optional, Sequence

import numpy as np

from .indicators import TechnicalIndicators
from .models import DivergenceResult, DivergenceType, PriceBar

logger = logging.getLogger(__name__)


class DivergenceDetector:
    def __init__(self, config: Dict):
        self.config = config
        div_config = config.get('divergence', {})
        self.rsi_period = config.get('rsi_period', 14)
        self.lookback = div_config.get('lookback', 30)
        self.near_extreme_pct = div_config.get('near_extreme_pct', 2.0)
        self.rsi_gap_pct = div_config.get('rsi_gap_pct', 5.0)
        self.min_peak_separation = div_config.get('min_peak_separation', 4)
        logger.info(f"Initialized DivergenceDetector with lookback={self.lookback}, RSI gap {self.rsi_gap_pct}%")

    def detect_divergence(self, bars: Sequence[PriceBar], lookback: Optional[int] = None) -> DivergenceResult:
        """
        Look for a price/RSI divergence over the last `lookback` bars.

        Args:
            bars: Price bars, oldest first
            lookback: Number of RSI-aligned points to inspect

        Returns:
            DivergenceResult; bearish wins when both patterns are present
        """
        lookback = lookback or self.lookback
        required = lookback + self.rsi_period
        if len(bars) < required:
            return DivergenceResult(detail=f"need {required} bars for divergence check, got {len(bars)}")

        closes = np.array([b.close for b in bars], dtype=float)
        rsi = TechnicalIndicators.rsi_series(closes, self.rsi_period).to_numpy()
        valid = ~np.isnan(rsi)
        prices = closes[valid][-lookback:]
        rsi_values = rsi[valid][-lookback:]

        recent_start = len(prices) - max(1, len(prices) // 3)

        result = self._bearish(prices, rsi_values, recent_start)
        if result is None:
            result = self._bullish(prices, rsi_values, recent_start)
        if result is None:
            return DivergenceResult(detail="price and RSI agree")

        logger.debug(f"Detected {result.type.value} divergence: {result.detail}")
        return result

    def _bearish(self, prices: np.ndarray, rsi: np.ndarray, recent_start: int) -> Optional[DivergenceResult]:
        high_idx = recent_start + int(np.argmax(prices[recent_start:]))
        if prices[high_idx] < prices.max() * (1 - self.near_extreme_pct / 100):
            return None

        peak_idx = int(np.argmax(rsi))
        if peak_idx > high_idx - self.min_peak_separation:
            return None

        peak_rsi, rsi_at_high = rsi[peak_idx], rsi[high_idx]
        if peak_rsi <= 0 or rsi_at_high > peak_rsi * (1 - self.rsi_gap_pct / 100):
            return None

        gap_pct = (peak_rsi - rsi_at_high) / peak_rsi * 100
        return DivergenceResult(
            has_divergence=True,
            type=DivergenceType.BEARISH,
            confidence=self._confidence(gap_pct),
            detail=f"price high {prices[high_idx]:.2f} with RSI {rsi_at_high:.1f} below earlier RSI peak {peak_rsi:.1f}",
        )

    def _bullish(self, prices: np.ndarray, rsi: np.ndarray, recent_start: int) -> Optional[DivergenceResult]:
        low_idx = recent_start + int(np.argmin(prices[recent_start:]))
        if prices[low_idx] > prices.min() * (1 + self.near_extreme_pct / 100):
            return None

        trough_idx = int(np.argmin(rsi))
        if trough_idx > low_idx - self.min_peak_separation:
            return None

        trough_rsi, rsi_at_low = rsi[trough_idx], rsi[low_idx]
        if rsi_at_low <= trough_rsi or rsi_at_low < trough_rsi * (1 + self.rsi_gap_pct / 100):
            return None

        gap_pct = (rsi_at_low - trough_rsi) / max(trough_rsi, 1.0) * 100
        return DivergenceResult(
            has_divergence=True,
            type=DivergenceType.BULLISH,
            confidence=self._confidence(gap_pct),
            detail=f"price low {prices[low_idx]:.2f} with RSI {rsi_at_low:.1f} above earlier RSI trough {trough_rsi:.1f}",
        )

    @staticmethod
    def _confidence(gap_pct: float) -> float:
        return round(min(95.0, 50.0 + gap_pct * 2), 1)
