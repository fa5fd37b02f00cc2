import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ingest.adapters import AdapterFactory, HistoryAdapter
from wave_analysis.config import load_config
from wave_analysis.engine import WaveAnalyzer
from wave_analysis.exceptions import HistoryUnavailableError, InvalidHistoryError

# --- Configuration ---
# Load configuration from config.yaml (defaults are used if it is missing or broken)
config = load_config()

# --- Logging Setup ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

SYMBOL_RATE_LIMIT_SECONDS = config.get("symbol_rate_limit_seconds", 1)


class TTLStore:
    """
    In-memory map whose entries expire `ttl_seconds` after they were set.
    Expired entries are swept on every access; when `max_entries` is set
    the oldest entries are evicted first.
    """
    def __init__(self, ttl_seconds: float, max_entries: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()

    def _sweep(self, now: float):
        expired = [key for key, (stamp, _) in self._entries.items() if now - stamp >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]

    def get(self, key: str) -> Optional[Any]:
        self._sweep(self.clock())
        entry = self._entries.get(key)
        return entry[1] if entry else None

    def set(self, key: str, value: Any):
        now = self.clock()
        self._sweep(now)
        self._entries.pop(key, None)
        self._entries[key] = (now, value)
        while self.max_entries is not None and len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        self._sweep(self.clock())
        return len(self._entries)


# --- Dependencies ---

def get_rate_limit_seconds() -> float:
    """Returns the rate limit interval in seconds."""
    return SYMBOL_RATE_LIMIT_SECONDS


async def rate_limit_dependency(request: Request, rate_limit_seconds: float = Depends(get_rate_limit_seconds)):
    store: TTLStore = request.app.state.rate_limit_store
    client_ip = request.client.host if request.client else 'unknown'
    current_time = time.time()

    last_request_time = store.get(client_ip)
    if last_request_time is not None:
        time_since_last_request = current_time - last_request_time
        if time_since_last_request < rate_limit_seconds:
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Please try again in {rate_limit_seconds - time_since_last_request:.2f} seconds."
            )

    store.set(client_ip, current_time)
    return True


def get_history_adapter(request: Request) -> HistoryAdapter:
    return request.app.state.history_adapter


def get_analyzer(request: Request) -> WaveAnalyzer:
    return request.app.state.analyzer


# --- App ---

def create_app(app_config: Optional[Dict[str, Any]] = None) -> FastAPI:
    """
    Builds the API. The analyzer, history adapter, history cache and
    rate-limit store live on `app.state`, one set per app.
    """
    app_config = app_config if app_config is not None else config
    app = FastAPI(title="Elliott Wave Analysis API")

    app.state.config = app_config
    app.state.analyzer = WaveAnalyzer(app_config)
    app.state.history_adapter = AdapterFactory(app_config).get_adapter()
    app.state.history_cache = TTLStore(
        app_config.get("history_cache_ttl_seconds", 300),
        max_entries=app_config.get("history_cache_max_entries", 256),
    )
    app.state.rate_limit_store = TTLStore(app_config.get("symbol_rate_limit_seconds", 1))

    @app.get("/health")
    async def health(request: Request):
        return {"status": "ok", "cached_symbols": len(request.app.state.history_cache)}

    @app.get("/api/elliott/{symbol}")
    async def elliott_wave(
        symbol: str,
        request: Request,
        price: Optional[float] = Query(None, gt=0, description="Current price; defaults to the last close"),
        rate_limit_ok: bool = Depends(rate_limit_dependency),
        adapter: HistoryAdapter = Depends(get_history_adapter),
        analyzer: WaveAnalyzer = Depends(get_analyzer),
    ):
        """
        Runs the Elliott Wave analysis for a symbol and returns the result
        (or the insufficient-data payload) as JSON.
        """
        symbol = symbol.upper()
        cache: TTLStore = request.app.state.history_cache
        bars = cache.get(symbol)

        if bars is None:
            days = request.app.state.config.get("history_days", 400)
            try:
                bars = await adapter.fetch_history(symbol, days)
            except HistoryUnavailableError as e:
                logger.warning(f"History unavailable for {symbol}: {e}")
                raise HTTPException(status_code=404, detail=str(e))
            except InvalidHistoryError as e:
                logger.warning(f"Invalid history for {symbol}: {e}")
                raise HTTPException(status_code=422, detail=str(e))
            cache.set(symbol, bars)

        current_price = price if price is not None else (bars[-1].close if bars else None)
        try:
            result = await asyncio.to_thread(analyzer.analyze, bars, current_price, symbol)
        except ValidationError as e:
            logger.warning(f"Invalid price data for {symbol}: {e}")
            raise HTTPException(status_code=422, detail="Invalid price data")
        except Exception as e:
            logger.error(f"Analysis failed for {symbol}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Analysis failed")

        return JSONResponse(result.model_dump(mode='json'))

    logger.info(f"Elliott Wave API ready (history source: {app_config.get('history_source', 'yahoo')})")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8003)
