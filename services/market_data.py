"""
Market Data Service

Glue between the HTTP routes and the Binance REST client:

- candles are fetched (async I/O), checked for emptiness, then sanitized (CPU only)
- prices, balances and orders are passed through unchanged
"""

from typing import Any, Dict, List, Optional

from core.logging import get_logger
from core.sanitizer import sanitize
from core.schemas import Balance, Candle, OrderRequest
from exchanges.binance.api_client import BinanceAPIClient


class NoDataError(RuntimeError):
    """Binance returned an empty candle list."""


class MarketDataService:
    """
    Fetch-then-sanitize pipeline for candles plus thin pass-throughs.

    Example:
        >>> async with BinanceAPIClient() as client:
        ...     service = MarketDataService(client)
        ...     candles = await service.get_candles("BTCUSDT", "1h", limit=100)
    """

    def __init__(self, client: BinanceAPIClient) -> None:
        self.client = client
        self._logger = get_logger(__name__)

    async def fetch_raw_candles(self, symbol: str, interval: str, limit: int) -> List[Candle]:
        """
        Fetch unsanitized candles.

        Raises:
            NoDataError: If Binance returns no candles
        """
        candles = await self.client.get_candles(symbol, interval, limit=limit)
        if not candles:
            self._logger.warning(f"Empty candle response for {symbol} {interval}")
            raise NoDataError("No candle data received from Binance")
        return candles

    async def get_candles(self, symbol: str, interval: str, limit: int = 100) -> List[Candle]:
        """
        Fetch candles and return them with outliers corrected.

        Raises:
            NoDataError: If Binance returns no candles
            RuntimeError: If the request fails after retries
        """
        raw = await self.fetch_raw_candles(symbol, interval, limit)
        return sanitize(raw)

    async def get_price(self, symbol: str) -> float:
        return await self.client.get_price(symbol)

    async def get_balance(self, asset: str) -> Optional[Balance]:
        return await self.client.get_balance(asset)

    async def place_order(self, side: str, order: OrderRequest) -> Dict[str, Any]:
        """Place a LIMIT order; side is "BUY" or "SELL"."""
        return await self.client.place_limit_order(side, order.symbol, order.quantity, order.price)
