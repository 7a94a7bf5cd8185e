"""
Binance Spot Connector

    exchanges/binance/
    ├── __init__.py          # Public exports
    ├── api_client.py        # REST API client (klines, prices, balances, orders)
    └── ws_client.py         # WebSocket streaming client (klines, ticker)
"""

from .api_client import BinanceAPIClient, BinanceAPIError, kline_to_candle
from .ws_client import (
    BinanceWebSocketClient,
    create_kline_stream,
    create_ticker_stream,
    stream_kline_to_candle
)

__all__ = [
    "BinanceAPIClient",
    "BinanceAPIError",
    "BinanceWebSocketClient",
    "create_kline_stream",
    "create_ticker_stream",
    "kline_to_candle",
    "stream_kline_to_candle",
]
