"""
Realtime Market Data Service

Serves "live" prices and candle windows from an in-memory cache that is kept
fresh by Binance WebSocket streams.

- Price for SYMBOL: cached under "SYMBOL", fed by <symbol>@ticker.
- Candles for SYMBOL/interval: cached under "SYMBOL_interval", fed by
  <symbol>@kline_<interval>. The raw window is kept separately; every kline
  update is merged into it and the whole window is sanitized again before the
  cached copy is replaced.

The first request for a key starts its subscription and is answered from the
REST API. Subscriptions are capped at max_subscriptions; evicting a key from
the cache (TTL or LRU) cancels its subscription.
"""

import asyncio
import contextlib
import time
from typing import Any, Callable, Dict, List, Optional

from core.logging import get_logger
from core.sanitizer import sanitize
from core.schemas import Candle
from exchanges.binance.ws_client import (
    BinanceWebSocketClient,
    DEFAULT_WS_URL,
    create_kline_stream,
    create_ticker_stream,
    stream_kline_to_candle,
)
from services.market_data import MarketDataService
from storage.memory_cache import MemoryCache


StreamFactory = Callable[[str, str], Any]


def merge_candle(window: List[Candle], candle: Candle, max_size: int) -> None:
    """
    Merge a streamed candle into a time-ordered window in place.

    Same open time as an existing candle replaces it (the bar is still
    forming); a newer open time is appended and the oldest candles are dropped
    to keep at most max_size. Candles older than the window are ignored.
    """
    if not window or candle.time > window[-1].time:
        window.append(candle)
        if len(window) > max_size:
            del window[: len(window) - max_size]
        return

    for i in range(len(window) - 1, -1, -1):
        if window[i].time == candle.time:
            window[i] = candle
            return
        if window[i].time < candle.time:
            return


class RealtimeService:
    """
    Cache of live prices and sanitized candle windows backed by WebSocket streams.

    Args:
        market: Service used for the initial REST fetches
        ws_url: Binance WebSocket base URL
        cache_ttl: Seconds a cached value survives without a stream update
        cache_max_entries: Maximum cached prices and windows (each)
        max_subscriptions: Maximum concurrent stream tasks
        window_size: Number of candles kept per symbol/interval
        clock: Time source for the caches
        stream_factory: Builds the stream client for (symbol, stream); defaults
            to BinanceWebSocketClient
    """

    def __init__(
        self,
        market: MarketDataService,
        ws_url: str = DEFAULT_WS_URL,
        cache_ttl: float = 300,
        cache_max_entries: int = 256,
        max_subscriptions: int = 50,
        window_size: int = 500,
        max_reconnect_delay: int = 30,
        clock: Callable[[], float] = time.monotonic,
        stream_factory: Optional[StreamFactory] = None
    ) -> None:
        self.market = market
        self.window_size = window_size
        self.max_subscriptions = max_subscriptions
        self._logger = get_logger(__name__)

        if stream_factory is None:
            def stream_factory(symbol: str, stream: str) -> BinanceWebSocketClient:
                if stream == "ticker":
                    return create_ticker_stream(symbol, ws_url, max_reconnect_delay)
                interval = stream[len("kline_"):]
                return create_kline_stream(symbol, interval, ws_url, max_reconnect_delay)
        self._stream_factory = stream_factory

        self._prices: MemoryCache[float] = MemoryCache(
            cache_ttl, cache_max_entries, clock, on_evict=self._on_evict
        )
        self._candles: MemoryCache[List[Candle]] = MemoryCache(
            cache_ttl, cache_max_entries, clock, on_evict=self._on_evict
        )
        self._windows: Dict[str, List[Candle]] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    @staticmethod
    def candle_key(symbol: str, interval: str) -> str:
        return f"{symbol.upper()}_{interval}"

    @property
    def subscriptions(self) -> List[str]:
        return list(self._tasks)

    # ============================================
    # Public API
    # ============================================

    async def get_price(self, symbol: str) -> float:
        """
        Latest price of symbol.

        Cached value if there is one, otherwise a REST lookup. A successful
        lookup starts the ticker stream and seeds the cache with the REST
        price, so the subscription lives and dies with its cache entry.
        """
        key = symbol.upper()
        cached = self._prices.get(key)
        if cached is not None:
            return cached

        price = await self.market.get_price(key)

        if self._subscribe(key, lambda: self._run_ticker(key)) and self._prices.get(key) is None:
            self._prices.set(key, price)

        return price

    async def get_candles(self, symbol: str, interval: str) -> List[Candle]:
        """
        Sanitized candle window for symbol/interval.

        Raises:
            NoDataError: If the initial REST fetch returns no candles
        """
        symbol = symbol.upper()
        key = self.candle_key(symbol, interval)

        cached = self._candles.get(key)
        if cached is not None:
            return cached

        raw = await self.market.fetch_raw_candles(symbol, interval, self.window_size)
        cleaned = sanitize(raw)

        if key in self._tasks:
            # Another request subscribed while we were fetching
            return self._candles.get(key) or cleaned

        if self._subscribe(key, lambda: self._run_klines(key, symbol, interval)):
            self._windows[key] = list(raw)
            self._candles.set(key, cleaned)

        return cleaned

    async def shutdown(self) -> None:
        """Cancel every stream task and clear the caches."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._tasks.clear()
        self._windows.clear()
        self._prices.clear()
        self._candles.clear()
        self._logger.info(f"Realtime service stopped ({len(tasks)} subscription(s) cancelled)")

    # ============================================
    # Subscription Management
    # ============================================

    def _subscribe(self, key: str, runner: Callable[[], Any]) -> bool:
        """Start a stream task for key unless one is running. Returns True if one is running afterwards."""
        if key in self._tasks:
            return True

        # Expired entries cancel their streams through _on_evict
        self._prices.purge_expired()
        self._candles.purge_expired()

        if len(self._tasks) >= self.max_subscriptions:
            self._logger.warning(
                f"Subscription limit reached ({self.max_subscriptions}); serving {key} without a live stream"
            )
            return False

        task = asyncio.create_task(runner(), name=f"realtime:{key}")
        task.add_done_callback(lambda t: self._on_task_done(key, t))
        self._tasks[key] = task
        self._logger.info(f"Subscribed to {key} ({len(self._tasks)} active)")
        return True

    def _on_task_done(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
            self._windows.pop(key, None)

        if task.cancelled():
            self._logger.debug(f"Subscription {key} cancelled")
        elif task.exception() is not None:
            self._logger.error(f"Subscription {key} failed: {task.exception()}")

    def _on_evict(self, key: str, _value: Any) -> None:
        task = self._tasks.pop(key, None)
        self._windows.pop(key, None)
        if task is not None:
            self._logger.info(f"Cache entry {key} evicted; cancelling its subscription")
            task.cancel()

    # ============================================
    # Stream Consumers
    # ============================================

    async def _run_ticker(self, key: str) -> None:
        async with self._stream_factory(key, "ticker") as stream:
            async for msg in stream.listen():
                if "c" not in msg:
                    self._logger.warning(f"Unexpected ticker message for {key}: {msg.get('e')}")
                    continue
                self._prices.set(key, float(msg["c"]))

    async def _run_klines(self, key: str, symbol: str, interval: str) -> None:
        async with self._stream_factory(symbol, f"kline_{interval}") as stream:
            async for msg in stream.listen():
                if msg.get("e") != "kline":
                    self._logger.warning(f"Unexpected message type for {key}: {msg.get('e')}")
                    continue

                window = self._windows.get(key)
                if window is None:
                    return

                merge_candle(window, stream_kline_to_candle(msg["k"]), self.window_size)
                self._candles.set(key, sanitize(window))
