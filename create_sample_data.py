#!/usr/bin/env python3
"""
Create a synthetic daily OHLCV CSV for testing the wave analysis.
The close path is a five-wave advance followed by an A-B-C correction,
with random noise on top.
"""

import argparse
import os

import numpy as np
import pandas as pd

# (leg length in bars, total move in %)
WAVE_LEGS = [
    (30, 25.0),   # 1
    (20, -12.0),  # 2
    (45, 45.0),   # 3
    (25, -10.0),  # 4
    (30, 18.0),   # 5
    (25, -16.0),  # A
    (15, 8.0),    # B
    (30, -14.0),  # C
]


def generate_wave_closes(start_price: float = 100.0, noise: float = 0.6, seed: int = 42) -> np.ndarray:
    rng = np.random.default_rng(seed)
    closes = [start_price]
    for bars, move_pct in WAVE_LEGS:
        step = (1 + move_pct / 100) ** (1 / bars)
        for _ in range(bars):
            closes.append(closes[-1] * step * (1 + rng.normal(0, noise) / 100))
    return np.array(closes)


def create_sample_data(path: str = "data/SAMPLE.csv", start_date: str = "2023-01-02", seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed + 1)
    closes = generate_wave_closes(seed=seed)
    dates = pd.bdate_range(start_date, periods=len(closes))

    opens = np.concatenate([[closes[0]], closes[:-1]])
    spread = np.abs(rng.normal(0, 0.5, len(closes))) / 100
    df = pd.DataFrame({
        'date': dates.date,
        'open': opens.round(2),
        'high': (np.maximum(opens, closes) * (1 + spread)).round(2),
        'low': (np.minimum(opens, closes) * (1 - spread)).round(2),
        'close': closes.round(2),
        'volume': rng.integers(100_000, 1_000_000, len(closes)),
    })

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    df.to_csv(path, index=False)
    print(f"Created {path} with {len(df)} rows")
    return df


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Write a synthetic daily OHLCV CSV")
    parser.add_argument("--output", default="data/SAMPLE.csv", help="Output CSV path")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()
    create_sample_data(args.output, seed=args.seed)
