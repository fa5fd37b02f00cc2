"""
Technical Indicators Module
Implements the classical indicators the wave engine leans on:
- RSI (Relative Strength Index)
- MACD (Moving Average Convergence Divergence)
- EMA/SMA (Exponential/Simple Moving Averages)
- Bollinger Bands
- ATR (Average True Range, Wilder smoothing)
- Stochastic KD

Every function is pure and returns a neutral default on short input
instead of raising.
"""

from typing import Sequence

import numpy as np
import pandas as pd

from .models import BollingerBands, MACDResult, StochasticKD


def _as_array(data: Sequence[float]) -> np.ndarray:
    return np.asarray(data, dtype=float)


class TechnicalIndicators:
    """
    Scalar indicator values computed from the trailing end of a price series.
    """

    @staticmethod
    def rsi(closes: Sequence[float], period: int = 14) -> float:
        """
        Calculate Relative Strength Index over the most recent `period` changes.

        Args:
            closes: Sequence of closing prices, oldest first
            period: Number of price changes to average (default 14)

        Returns:
            RSI in [0, 100]; 100 when there were no losses, 50 when there
            are fewer than period + 1 closes.
        """
        prices = _as_array(closes)
        if len(prices) < period + 1:
            return 50.0

        delta = np.diff(prices[-(period + 1):])
        avg_gain = delta[delta > 0].sum() / period
        avg_loss = -delta[delta < 0].sum() / period

        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        return float(100 - (100 / (1 + rs)))

    @staticmethod
    def rsi_series(closes: Sequence[float], period: int = 14) -> pd.Series:
        """
        RSI for every bar using the same simple-window formula as `rsi`.
        The first `period` values are NaN.
        """
        prices = pd.Series(_as_array(closes))
        delta = prices.diff()
        gain = delta.where(delta > 0, 0.0).rolling(window=period).sum() / period
        loss = (-delta.where(delta < 0, 0.0)).rolling(window=period).sum() / period
        rs = gain / loss
        rsi = 100 - (100 / (1 + rs))
        # No losses in the window means RSI 100, never NaN or inf
        rsi = rsi.where(loss != 0, 100.0).clip(0.0, 100.0)
        rsi.iloc[:period] = np.nan
        return rsi

    @staticmethod
    def sma(data: Sequence[float], period: int) -> float:
        values = _as_array(data)
        if len(values) == 0:
            return 0.0
        if len(values) < period:
            return float(values[-1])
        return float(values[-period:].mean())

    @staticmethod
    def ema_series(data: Sequence[float], period: int) -> np.ndarray:
        """
        Running EMA seeded with the simple average of the first `period`
        points. Entry i is the EMA of data[:i + 1]; entries before the seed
        are NaN.
        """
        values = _as_array(data)
        result = np.full(len(values), np.nan)
        if len(values) < period:
            return result

        multiplier = 2 / (period + 1)
        ema = values[:period].mean()
        result[period - 1] = ema
        for i in range(period, len(values)):
            ema = (values[i] - ema) * multiplier + ema
            result[i] = ema
        return result

    @staticmethod
    def ema(data: Sequence[float], period: int) -> float:
        values = _as_array(data)
        if len(values) == 0:
            return 0.0
        if len(values) < period:
            return float(values[-1])
        return float(TechnicalIndicators.ema_series(values, period)[-1])

    @staticmethod
    def macd(closes: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9) -> MACDResult:
        """
        Calculate MACD line, signal line and histogram at the last bar.

        Returns zeros when the history is shorter than slow + signal.
        """
        prices = _as_array(closes)
        if len(prices) < slow + signal:
            return MACDResult()

        fast_ema = TechnicalIndicators.ema_series(prices, fast)
        slow_ema = TechnicalIndicators.ema_series(prices, slow)
        macd_values = (fast_ema - slow_ema)[slow - 1:]

        macd_line = float(macd_values[-1])
        signal_line = TechnicalIndicators.ema(macd_values, signal)
        return MACDResult(
            macd_line=macd_line,
            signal_line=signal_line,
            histogram=macd_line - signal_line,
        )

    @staticmethod
    def bollinger(closes: Sequence[float], period: int = 20, std_dev_multiplier: float = 2) -> BollingerBands:
        """
        Calculate Bollinger Bands over the last `period` closes (population
        standard deviation). A flat window collapses the bands to the mean.
        """
        prices = _as_array(closes)
        if len(prices) == 0:
            return BollingerBands(upper=0.0, middle=0.0, lower=0.0, bandwidth_pct=0.0)

        window = prices[-period:]
        middle = float(window.mean())
        std = float(window.std())
        width = std * std_dev_multiplier
        bandwidth_pct = (width * 2 / middle) * 100 if middle != 0 else 0.0
        return BollingerBands(
            upper=middle + width,
            middle=middle,
            lower=middle - width,
            bandwidth_pct=bandwidth_pct,
        )

    @staticmethod
    def atr(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14) -> float:
        """
        Calculate Average True Range with Wilder smoothing.

        Returns 0 when there are fewer than period + 1 bars.
        """
        high = _as_array(highs)
        low = _as_array(lows)
        close = _as_array(closes)
        if len(close) < period + 1:
            return 0.0

        prev_close = close[:-1]
        tr = np.maximum.reduce([
            high[1:] - low[1:],
            np.abs(high[1:] - prev_close),
            np.abs(low[1:] - prev_close),
        ])

        atr = tr[:period].mean()
        for value in tr[period:]:
            atr = (atr * (period - 1) + value) / period
        return float(atr)

    @staticmethod
    def stochastic_kd(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 9) -> StochasticKD:
        """
        Calculate the stochastic KD oscillator with 1/3 smoothing.
        K and D start at 50; a flat look-back range keeps RSV at 50.
        """
        high = _as_array(highs)
        low = _as_array(lows)
        close = _as_array(closes)
        if len(close) < period:
            return StochasticKD()

        k = d = rsv = 50.0
        for i in range(period - 1, len(close)):
            highest = high[i - period + 1:i + 1].max()
            lowest = low[i - period + 1:i + 1].min()
            rsv = 50.0 if highest == lowest else (close[i] - lowest) / (highest - lowest) * 100
            k = k * 2 / 3 + rsv / 3
            d = d * 2 / 3 + k / 3
        return StochasticKD(k=float(k), d=float(d), rsv=float(rsv))

