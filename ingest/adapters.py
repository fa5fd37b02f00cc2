import asyncio
import datetime
import logging
import os
import typing
from abc import ABC, abstractmethod

import pandas as pd
import yfinance as yf
from pydantic import ValidationError

from wave_analysis.exceptions import HistoryUnavailableError, InvalidHistoryError
from wave_analysis.models import PriceBar

logger = logging.getLogger(__name__)

# Default configuration values (can be overridden by config.yaml)
DEFAULT_HISTORY_DAYS = 400
DEFAULT_CSV_DIR = './data'

COLUMN_ALIASES = {
    'timestamp': 'date',
    'datetime': 'date',
    'index': 'date',
    'adj close': 'adj_close',
}


def bars_from_dataframe(df: pd.DataFrame) -> typing.List[PriceBar]:
    """
    Converts an OHLCV DataFrame into PriceBars, oldest first.
    Accepts a 'date'/'timestamp' column or a DatetimeIndex, any column case,
    and a lone 'price' column in place of 'close'. Missing open/high/low
    fall back to the close, missing volume to 0. Rows with unparseable
    values are dropped; a duplicated date keeps its last row.

    Raises:
        InvalidHistoryError: required columns are missing or a row fails validation
    """
    if df is None or df.empty:
        return []

    frame = df.copy()
    if isinstance(frame.index, pd.DatetimeIndex):
        frame = frame.reset_index()
    frame.columns = [str(c).strip().lower() for c in frame.columns]
    frame = frame.rename(columns=COLUMN_ALIASES)
    if 'close' not in frame.columns and 'price' in frame.columns:
        frame = frame.rename(columns={'price': 'close'})

    missing = [c for c in ('date', 'close') if c not in frame.columns]
    if missing:
        raise InvalidHistoryError(f"History is missing columns {missing}; got {list(frame.columns)}")

    for col in ('open', 'high', 'low'):
        if col not in frame.columns:
            frame[col] = frame['close']
    if 'volume' not in frame.columns:
        frame['volume'] = 0.0

    frame['date'] = pd.to_datetime(frame['date'], errors='coerce')
    for col in ('open', 'high', 'low', 'close', 'volume'):
        frame[col] = pd.to_numeric(frame[col], errors='coerce')
    frame['volume'] = frame['volume'].fillna(0.0)

    before = len(frame)
    frame = frame.dropna(subset=['date', 'open', 'high', 'low', 'close'])
    if len(frame) < before:
        logger.warning(f"Dropped {before - len(frame)} history rows with missing or non-numeric values")

    frame['day'] = frame['date'].dt.date
    frame = frame.sort_values('date', kind='stable').drop_duplicates(subset='day', keep='last')

    try:
        return [
            PriceBar(date=row.day, open=row.open, high=row.high, low=row.low, close=row.close, volume=row.volume)
            for row in frame.itertuples(index=False)
        ]
    except ValidationError as e:
        raise InvalidHistoryError(f"Invalid price bar in history: {e}") from e


class HistoryAdapter(ABC):
    """
    Abstract base class for price-history adapters.
    Responsible for fetching daily bars for a symbol.
    """
    def __init__(self, default_days: int = DEFAULT_HISTORY_DAYS):
        self.default_days = default_days
        logger.info(f"Initialized {self.__class__.__name__} with default history of {self.default_days} days")

    @abstractmethod
    async def fetch_history(self, symbol: str, days: typing.Optional[int] = None) -> typing.List[PriceBar]:
        """
        Fetches daily bars covering the last `days` calendar days, oldest first.

        Raises:
            HistoryUnavailableError: no history could be produced for the symbol
            InvalidHistoryError: the source returned malformed rows
        """
        pass


class CSVHistoryAdapter(HistoryAdapter):
    """
    Adapter for daily OHLCV CSV files, one file per symbol (<csv_dir>/<SYMBOL>.csv).
    Used for testing and offline analysis without live API calls.
    """
    def __init__(self, csv_dir: str = DEFAULT_CSV_DIR, default_days: int = DEFAULT_HISTORY_DAYS,
                 csv_path: typing.Optional[str] = None):
        super().__init__(default_days)
        self.csv_dir = csv_dir
        self.csv_path = csv_path

    def path_for(self, symbol: str) -> str:
        return self.csv_path or os.path.join(self.csv_dir, f"{symbol.upper()}.csv")

    def _read(self, symbol: str) -> pd.DataFrame:
        path = self.path_for(symbol)
        try:
            return pd.read_csv(path)
        except FileNotFoundError as e:
            logger.error(f"History CSV for {symbol} not found at {path}")
            raise HistoryUnavailableError(f"No history file for {symbol}") from e
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            logger.error(f"Error reading history CSV {path}: {e}")
            raise InvalidHistoryError(f"Unreadable history file for {symbol}: {e}") from e

    async def fetch_history(self, symbol: str, days: typing.Optional[int] = None) -> typing.List[PriceBar]:
        bars = bars_from_dataframe(self._read(symbol))
        if not bars:
            raise HistoryUnavailableError(f"History file for {symbol} has no usable rows")

        cutoff = bars[-1].date - datetime.timedelta(days=days or self.default_days)
        bars = [b for b in bars if b.date > cutoff]
        logger.info(f"Loaded {len(bars)} bars for {symbol} from {self.path_for(symbol)}")
        return bars


class YahooFinanceAdapter(HistoryAdapter):
    """
    Adapter for Yahoo Finance (via yfinance).
    yfinance is blocking, so requests run in a worker thread.
    """
    def _download(self, symbol: str, days: int) -> pd.DataFrame:
        ticker = yf.Ticker(symbol)
        return ticker.history(period=f"{days}d", interval='1d', auto_adjust=False)

    async def fetch_history(self, symbol: str, days: typing.Optional[int] = None) -> typing.List[PriceBar]:
        days = days or self.default_days
        try:
            data = await asyncio.to_thread(self._download, symbol, days)
        except Exception as e:
            logger.error(f"Error fetching data from Yahoo Finance for {symbol}: {e}")
            raise HistoryUnavailableError(f"Yahoo Finance request failed for {symbol}") from e

        if data is None or data.empty:
            logger.warning(f"No data returned from Yahoo Finance for {symbol}")
            raise HistoryUnavailableError(f"No Yahoo Finance history for {symbol}")
        if 'Close' not in data.columns:
            logger.error(f"Unexpected data format from Yahoo Finance for {symbol}. Columns: {data.columns.tolist()}")
            raise InvalidHistoryError(f"Unexpected Yahoo Finance columns for {symbol}")

        bars = bars_from_dataframe(data)
        logger.info(f"Fetched {len(bars)} daily bars from Yahoo Finance for {symbol}")
        return bars


class AdapterFactory:
    """Factory to create the configured history adapter."""
    def __init__(self, config: dict):
        self.config = config
        self.source = config.get('history_source', 'yahoo')
        self.history_days = config.get('history_days', DEFAULT_HISTORY_DAYS)
        self.csv_dir = config.get('csv_history_dir', DEFAULT_CSV_DIR)

    def get_adapter(self, source_preference: typing.Optional[str] = None) -> HistoryAdapter:
        """
        Returns an adapter for 'csv' or 'yahoo'. Unknown sources fall back
        to Yahoo Finance.
        """
        source = (source_preference or self.source or 'yahoo').lower()
        if source == 'csv':
            logger.info(f"Using CSVHistoryAdapter with directory {self.csv_dir}")
            return CSVHistoryAdapter(csv_dir=self.csv_dir, default_days=self.history_days)
        if source != 'yahoo':
            logger.warning(f"Unknown history source '{source}', defaulting to Yahoo Finance")
        return YahooFinanceAdapter(default_days=self.history_days)


def get_history_adapter(config: typing.Optional[dict] = None, source_preference: typing.Optional[str] = None) -> HistoryAdapter:
    """Helper function to get a history adapter instance."""
    return AdapterFactory(config or {}).get_adapter(source_preference)
