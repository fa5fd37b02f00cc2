import datetime

import numpy as np
import pytest

from wave_analysis.config import resolve_config
from wave_analysis.models import PriceBar


def _make_bars(closes, start=datetime.date(2024, 1, 1)):
    """One daily bar per close; open, high and low equal the close."""
    return [
        PriceBar(
            date=start + datetime.timedelta(days=i),
            open=float(c),
            high=float(c),
            low=float(c),
            close=float(c),
            volume=1000.0,
        )
        for i, c in enumerate(closes)
    ]


@pytest.fixture
def make_bars():
    return _make_bars


@pytest.fixture
def config():
    return resolve_config()


@pytest.fixture
def rally_then_pullback():
    """
    40 bars: 100 -> 150 over 25 bars, then an orderly pullback to 140.
    Reads as wave 1 up followed by wave 2 in progress.
    """
    closes = np.concatenate([np.linspace(100, 150, 25), np.linspace(150, 140, 16)[1:]])
    return _make_bars(closes)


def _staircase(steps, rise=0.12, dip=0.06, bars_per_rise=10, bars_per_dip=5):
    """Closes climbing `steps` rises separated by dips, ending on the all-time high."""
    closes, price = [100.0], 100.0
    for step in range(steps):
        if step:
            low = price * (1 - dip)
            closes.extend(np.linspace(price, low, bars_per_dip + 1)[1:])
            price = low
        high = price * (1 + rise)
        closes.extend(np.linspace(price, high, bars_per_rise + 1)[1:])
        price = high
    return closes


@pytest.fixture
def staircase():
    return _staircase
