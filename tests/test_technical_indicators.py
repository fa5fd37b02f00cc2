"""
Test suite for technical indicators module.
"""

import numpy as np
import pytest

from wave_analysis.indicators import TechnicalIndicators


def test_rsi_short_input_is_neutral():
    """RSI falls back to 50 when there are not enough closes."""
    assert TechnicalIndicators.rsi([10, 11, 12], period=14) == 50.0, "Short input should give neutral RSI"


def test_rsi_bounds():
    """Test RSI for one-way and mixed series."""
    rising = list(range(1, 30))
    assert TechnicalIndicators.rsi(rising, period=14) == 100.0, "No losses should give RSI 100"

    falling = list(range(30, 1, -1))
    assert TechnicalIndicators.rsi(falling, period=14) == 0.0, "No gains should give RSI 0"

    mixed = [10, 11, 12, 13, 14, 13, 12, 11, 10, 9]
    value = TechnicalIndicators.rsi(mixed, period=5)
    assert 0 <= value <= 100, "RSI should be between 0 and 100"


def test_rsi_series():
    """RSI series is NaN for the first `period` bars and bounded afterwards."""
    closes = [100, 101, 100, 102, 104, 103, 105, 107, 106, 108, 110, 109]
    series = TechnicalIndicators.rsi_series(closes, period=5)

    assert len(series) == len(closes), "Series should have same length as input"
    assert series.iloc[:5].isna().all(), "First values should be NaN"
    valid = series.dropna()
    assert len(valid) == len(closes) - 5
    assert ((valid >= 0) & (valid <= 100)).all(), "RSI values should be between 0 and 100"


def test_rsi_series_matches_scalar():
    """The last value of the series equals the scalar RSI."""
    closes = [100, 101, 100, 102, 104, 103, 105, 107, 106, 108, 110, 109]
    series = TechnicalIndicators.rsi_series(closes, period=5)
    assert series.iloc[-1] == pytest.approx(TechnicalIndicators.rsi(closes, period=5))


def test_sma_calculation():
    """Test SMA calculation with known values."""
    prices = [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]
    assert TechnicalIndicators.sma(prices, period=3) == 9.0, "SMA of last three should be 9"
    assert TechnicalIndicators.sma([4, 5], period=3) == 5.0, "Short input should return the last value"
    assert TechnicalIndicators.sma([], period=3) == 0.0


def test_ema_series_seed():
    """EMA is seeded with the simple average of the first `period` values."""
    ema = TechnicalIndicators.ema_series([1, 2, 3, 4, 5], period=3)
    assert np.isnan(ema[:2]).all(), "Entries before the seed should be NaN"
    assert ema[2] == pytest.approx(2.0)
    # multiplier 0.5: (4 - 2) * 0.5 + 2 = 3, (5 - 3) * 0.5 + 3 = 4
    assert ema[3] == pytest.approx(3.0)
    assert ema[4] == pytest.approx(4.0)


def test_macd_calculation():
    """MACD is zero on short input and positive in a steady uptrend."""
    short = TechnicalIndicators.macd(list(range(100, 111)))
    assert short.macd_line == 0 and short.signal_line == 0 and short.histogram == 0

    rising = [100 * 1.01 ** i for i in range(80)]
    result = TechnicalIndicators.macd(rising)
    assert result.macd_line > 0, "Fast EMA should lead slow EMA in an uptrend"
    assert result.histogram == pytest.approx(result.macd_line - result.signal_line)


def test_bollinger_flat_series():
    """A flat window collapses the bands onto the mean."""
    bands = TechnicalIndicators.bollinger([50.0] * 25, period=20)
    assert bands.upper == bands.middle == bands.lower == 50.0
    assert bands.bandwidth_pct == 0.0


def test_bollinger_width():
    """Bands sit two standard deviations around the mean."""
    closes = [10, 12] * 10
    bands = TechnicalIndicators.bollinger(closes, period=20, std_dev_multiplier=2)
    assert bands.middle == pytest.approx(11.0)
    assert bands.upper == pytest.approx(13.0)
    assert bands.lower == pytest.approx(9.0)


def test_atr_constant_range():
    """ATR equals the true range when every bar has the same range."""
    closes = [100.0] * 30
    highs = [101.0] * 30
    lows = [99.0] * 30
    assert TechnicalIndicators.atr(highs, lows, closes, period=14) == pytest.approx(2.0)
    assert TechnicalIndicators.atr(highs[:5], lows[:5], closes[:5], period=14) == 0.0, "Short input should give 0"


def test_stochastic_kd():
    """Closing at the top of the range drives RSV to 100 and K above D."""
    closes = list(range(1, 21))
    kd = TechnicalIndicators.stochastic_kd(closes, closes, closes, period=9)
    assert kd.rsv == pytest.approx(100.0)
    assert kd.k > kd.d > 50

    neutral = TechnicalIndicators.stochastic_kd([1, 2], [1, 2], [1, 2], period=9)
    assert (neutral.k, neutral.d, neutral.rsv) == (50.0, 50.0, 50.0)
