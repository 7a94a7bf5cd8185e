"""
Binance WebSocket Client

Async WebSocket streaming for Binance Spot market streams.
It handles:
- WebSocket connections with automatic reconnection
- Exponential backoff on failures
- JSON message parsing
- Graceful shutdown

Supported Streams:
    - Kline/Candlestick: <symbol>@kline_<interval>
    - 24h rolling ticker: <symbol>@ticker

WebSocket Documentation:
    https://developers.binance.com/docs/binance-spot-api-docs/web-socket-streams

Usage:
    async with create_kline_stream("BTCUSDT", "1m") as client:
        async for message in client.listen():
            print(message["k"]["c"])
"""

import aiohttp
import asyncio
import json
from typing import AsyncGenerator, Dict, Any, Optional

from core.logging import get_logger, log_websocket_event
from core.schemas import Candle
from core.utils.time import to_utc_datetime


DEFAULT_WS_URL = "wss://stream.binance.com:9443/ws"


def stream_kline_to_candle(kline: Dict[str, Any]) -> Candle:
    """
    Convert the "k" object of a kline stream event to a Candle.

    Payload:
        {"t": 1672515780000, "o": "0.0010", "h": "0.0025", "l": "0.0015",
         "c": "0.0020", "v": "1000", "x": false, ...}
    """
    return Candle(
        time=to_utc_datetime(kline["t"]),
        open=float(kline["o"]),
        high=float(kline["h"]),
        low=float(kline["l"]),
        close=float(kline["c"]),
        volume=float(kline["v"])
    )


class BinanceWebSocketClient:
    """
    Async WebSocket client for a single Binance stream.

    Yields raw JSON messages; callers normalize them.

    Attributes:
        base_url: WebSocket base URL (production or testnet)
        symbol: Trading pair (lowercase, e.g., "btcusdt")
        stream: Stream type (e.g., "kline_1m", "ticker")
        max_reconnect_delay: Maximum delay between reconnection attempts (seconds)

    Example:
        >>> async with BinanceWebSocketClient("BTCUSDT", "kline_1m") as client:
        ...     async for msg in client.listen():
        ...         print(f"Event: {msg['e']}")
    """

    def __init__(
        self,
        symbol: str,
        stream: str,
        base_url: str = DEFAULT_WS_URL,
        max_reconnect_delay: int = 30
    ):
        """
        Initialize WebSocket client.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            stream: Stream type (e.g., "kline_1m", "ticker")
            base_url: WebSocket base URL
            max_reconnect_delay: Max seconds to wait between reconnects (default: 30)
        """
        self.symbol = symbol.lower()  # Binance requires lowercase
        self.stream = stream
        self.base_url = base_url.rstrip("/")
        self.max_reconnect_delay = max_reconnect_delay

        self.session: Optional[aiohttp.ClientSession] = None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._is_running = False
        self._reconnect_attempt = 0

        self.logger = get_logger(__name__)

    @property
    def stream_name(self) -> str:
        return f"{self.symbol}@{self.stream}"

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.stream_name}"

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self._is_running = True
        self.logger.debug(f"BinanceWebSocketClient session created for {self.stream_name}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self._is_running = False
        await self.close()
        self.logger.debug(f"BinanceWebSocketClient session closed for {self.stream_name}")

    # ============================================
    # WebSocket Connection Management
    # ============================================

    async def connect(self) -> None:
        """
        Establish the WebSocket connection.

        Raises:
            RuntimeError: If session not initialized
            aiohttp.ClientError: If connection fails
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        self.logger.info(f"Connecting to {self.url}")

        try:
            self.ws = await self.session.ws_connect(
                self.url,
                heartbeat=30,
                timeout=aiohttp.ClientTimeout(total=10)
            )
            self._reconnect_attempt = 0
            log_websocket_event("binance", "connected", self.stream_name)

        except Exception as e:
            log_websocket_event("binance", "error", self.stream_name, f"connect failed: {e}")
            raise

    async def close(self) -> None:
        """Close WebSocket and session. Safe to call multiple times."""
        if self.ws and not self.ws.closed:
            await self.ws.close()
            self.logger.debug(f"WebSocket closed for {self.stream_name}")

        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug(f"Session closed for {self.stream_name}")

    def stop(self) -> None:
        """Ask listen() to exit after the current message."""
        self._is_running = False

    # ============================================
    # Message Streaming with Auto-Reconnect
    # ============================================

    async def listen(self) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Yield parsed JSON messages, reconnecting on disconnect.

        Reconnection waits min(2^(N-1), max_reconnect_delay) seconds before
        attempt N. Invalid JSON frames are logged and skipped.

        Yields:
            Dict[str, Any]: Parsed JSON message from Binance
        """
        while self._is_running:
            try:
                if not self.ws or self.ws.closed:
                    await self.connect()

                async for msg in self.ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        try:
                            data = json.loads(msg.data)
                        except json.JSONDecodeError as e:
                            self.logger.error(f"Failed to parse JSON: {msg.data[:100]}... Error: {e}")
                            continue

                        yield data

                        if not self._is_running:
                            break

                    elif msg.type == aiohttp.WSMsgType.CLOSED:
                        self.logger.warning(f"WebSocket closed: {msg.data}")
                        break

                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        self.logger.error(f"WebSocket error: {msg.data}")
                        break

                    else:
                        self.logger.debug(f"Received message type: {msg.type}")

            except asyncio.CancelledError:
                self.logger.info(f"WebSocket listener cancelled for {self.stream_name}")
                raise

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log_websocket_event("binance", "error", self.stream_name, str(e))

            if self._is_running:
                self._reconnect_attempt += 1
                delay = min(2 ** (self._reconnect_attempt - 1), self.max_reconnect_delay)
                self.logger.warning(
                    f"Reconnecting {self.stream_name} in {delay}s... (attempt {self._reconnect_attempt})"
                )
                await asyncio.sleep(delay)

        self.logger.info(f"WebSocket listener stopped for {self.stream_name}")


# ============================================
# Convenience Stream Builders
# ============================================

def create_kline_stream(
    symbol: str,
    interval: str,
    base_url: str = DEFAULT_WS_URL,
    max_reconnect_delay: int = 30
) -> BinanceWebSocketClient:
    """
    Create a WebSocket client for kline/candlestick streaming.

    Example:
        >>> async with create_kline_stream("BTCUSDT", "1m") as client:
        ...     async for msg in client.listen():
        ...         print(msg["k"]["c"])  # Close price
    """
    return BinanceWebSocketClient(symbol, f"kline_{interval}", base_url, max_reconnect_delay)


def create_ticker_stream(
    symbol: str,
    base_url: str = DEFAULT_WS_URL,
    max_reconnect_delay: int = 30
) -> BinanceWebSocketClient:
    """
    Create a WebSocket client for the 24h rolling ticker (last price in "c").

    Example:
        >>> async with create_ticker_stream("BTCUSDT") as client:
        ...     async for msg in client.listen():
        ...         print(float(msg["c"]))
    """
    return BinanceWebSocketClient(symbol, "ticker", base_url, max_reconnect_delay)
