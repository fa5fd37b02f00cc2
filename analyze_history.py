#!/usr/bin/env python3
"""
Run the Elliott Wave analysis on a daily OHLCV CSV file and print the
result as JSON.

    python analyze_history.py --csv data/SAMPLE.csv --price 123.4
"""

import argparse
import asyncio
import json
import logging
import sys

from ingest.adapters import CSVHistoryAdapter
from wave_analysis.config import load_config
from wave_analysis.engine import WaveAnalyzer
from wave_analysis.exceptions import WaveAnalysisError

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Elliott Wave analysis of a daily price history CSV")
    parser.add_argument("--csv", required=True, help="Path to a CSV with date/open/high/low/close/volume columns")
    parser.add_argument("--price", type=float, default=None, help="Current price (default: last close)")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml (default: ./config.yaml)")
    parser.add_argument("--symbol", type=str, default=None, help="Symbol to report in the result")
    parser.add_argument("--verbose", action="store_true", help="Log analysis steps to stderr")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    config = load_config(args.config)
    adapter = CSVHistoryAdapter(csv_path=args.csv, default_days=config.get("history_days", 400))
    symbol = args.symbol or "CSV"

    try:
        bars = asyncio.run(adapter.fetch_history(symbol))
    except WaveAnalysisError as e:
        logger.error(f"Could not load {args.csv}: {e}")
        return 1

    result = WaveAnalyzer(config).analyze(bars, args.price, symbol=args.symbol)
    print(json.dumps(result.model_dump(mode='json'), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
