"""
Binance REST API Client

Async HTTP client for the Binance Spot REST API (production or testnet).
It handles:
- HTTP requests with retry logic on rate limits (429, 418, 503)
- HMAC-SHA256 signing for account and order endpoints
- Error handling and logging
- Normalization of klines to our Candle schema

API Documentation:
    https://developers.binance.com/docs/binance-spot-api-docs/rest-api

Usage:
    async with BinanceAPIClient() as client:
        candles = await client.get_candles("BTCUSDT", "1h", limit=100)
        price = await client.get_price("BTCUSDT")
"""

import aiohttp
import asyncio
import hashlib
import hmac
import time
from decimal import Decimal
from typing import List, Dict, Optional, Any
from urllib.parse import urlencode

from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import Candle, Balance
from core.utils.time import to_utc_datetime


MAX_KLINES_LIMIT = 1000  # Binance Spot maximum per request
MAX_ATTEMPTS = 3
RETRY_STATUSES = (429, 418, 503)


class BinanceAPIError(RuntimeError):
    """
    Non-retryable error returned by Binance.

    Attributes:
        status: HTTP status code
        code: Binance error code (e.g. -1121 "Invalid symbol"), if present
    """

    def __init__(self, message: str, status: int, code: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.code = code


def kline_to_candle(row: List[Any]) -> Candle:
    """
    Convert one REST kline row to a Candle.

    Row format:
        [openTime, open, high, low, close, volume, closeTime, quoteVolume, trades, ...]
    """
    return Candle(
        time=to_utc_datetime(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5])
    )


def format_decimal(value: float) -> str:
    """Format a number for Binance without scientific notation (1e-05 -> '0.00001')."""
    return format(Decimal(str(value)).normalize(), "f")


class BinanceAPIClient:
    """
    Async HTTP client for the Binance Spot REST API.

    Attributes:
        base_url: REST base URL (production or testnet)
        api_key: API key, sent as X-MBX-APIKEY when set
        api_secret: Secret used to sign account/order requests
        session: aiohttp ClientSession for HTTP requests

    Example:
        >>> async with BinanceAPIClient() as client:
        ...     candles = await client.get_candles("BTCUSDT", "1h", limit=100)
        ...     print(f"Fetched {len(candles)} candles")

    Notes:
        - Use as an async context manager so the session is closed
        - Public endpoints (klines, prices) need no credentials
    """

    BASE_URL = "https://api.binance.com"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 10,
        recv_window: int = 5000,
        retry_delay: float = 1.5
    ):
        """
        Initialize the Binance API client.

        Args:
            api_key: Binance API key (needed for signed endpoints)
            api_secret: Binance API secret (needed for signed endpoints)
            base_url: Override BASE_URL, e.g. the testnet URL
            timeout: Total request timeout in seconds
            recv_window: recvWindow in milliseconds for signed requests
            retry_delay: Base delay for linear backoff between retries
        """
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.recv_window = recv_window
        self.retry_delay = retry_delay
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings) -> "BinanceAPIClient":
        """Build a client for the environment selected in settings (testnet or production)."""
        return cls(
            api_key=settings.active_api_key or None,
            api_secret=settings.active_api_secret or None,
            base_url=settings.active_base_url,
            timeout=settings.request_timeout,
            recv_window=settings.recv_window
        )

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self.logger.debug(f"BinanceAPIClient session created ({self.base_url})")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.logger.debug("BinanceAPIClient session closed")

    # ============================================
    # Request Signing
    # ============================================

    def _sign(self, params: Dict[str, Any]) -> str:
        """
        Build a signed query string for private endpoints.

        Adds timestamp and recvWindow, then appends the HMAC-SHA256 signature
        of the encoded parameters.

        Raises:
            ValueError: If API key or secret is missing
        """
        if not (self.api_key and self.api_secret):
            raise ValueError("Signed endpoint requires BINANCE_API_KEY and BINANCE_API_SECRET")

        params = dict(params)
        params["timestamp"] = int(time.time() * 1000)
        params.setdefault("recvWindow", self.recv_window)

        query_string = urlencode(params)
        signature = hmac.new(
            self.api_secret.encode("utf-8"),
            query_string.encode("utf-8"),
            hashlib.sha256
        ).hexdigest()

        return f"{query_string}&signature={signature}"

    # ============================================
    # HTTP Request Handler with Retry Logic
    # ============================================

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = False
    ) -> Any:
        """
        Make a request to the Binance API with retry logic.

        Rate limit responses (429, 418, 503), timeouts and connection errors are
        retried up to 3 times with a delay of retry_delay * attempt. Any other
        non-200 status fails immediately with BinanceAPIError.

        Args:
            method: HTTP method ("GET" or "POST")
            path: API endpoint path (e.g., "/api/v3/klines")
            params: Query parameters
            signed: Sign the request (account and order endpoints)

        Returns:
            Parsed JSON response

        Raises:
            BinanceAPIError: Binance rejected the request
            RuntimeError: Request failed after all retries
            ValueError: Signed request without credentials
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        headers = {}
        if self.api_key:
            headers["X-MBX-APIKEY"] = self.api_key

        log_api_request("binance", method, path, params)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            if signed:
                # Re-sign on every attempt so the timestamp stays inside recvWindow
                url = f"{self.base_url}{path}?{self._sign(params or {})}"
                query = None
            else:
                url = f"{self.base_url}{path}"
                query = params

            started = time.perf_counter()
            try:
                async with self.session.request(
                    method,
                    url,
                    params=query,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as resp:
                    log_api_response("binance", path, resp.status, time.perf_counter() - started)

                    if resp.status == 200:
                        return await resp.json(content_type=None)

                    if resp.status not in RETRY_STATUSES:
                        raise await self._error_from_response(resp, path)

                    self.logger.warning(
                        f"Rate limited (HTTP {resp.status}) on {path} "
                        f"(attempt {attempt}/{MAX_ATTEMPTS})"
                    )

            except asyncio.TimeoutError:
                self.logger.error(f"Timeout on {path} (attempt {attempt}/{MAX_ATTEMPTS})")

            except aiohttp.ClientError as e:
                self.logger.error(f"Request failed on {path}: {e} (attempt {attempt}/{MAX_ATTEMPTS})")

            if attempt < MAX_ATTEMPTS:
                await asyncio.sleep(self.retry_delay * attempt)

        raise RuntimeError(f"Failed to {method} {path} after {MAX_ATTEMPTS} attempts")

    async def _error_from_response(self, resp: aiohttp.ClientResponse, path: str) -> BinanceAPIError:
        """Turn a failed response into BinanceAPIError, using Binance's {code, msg} body if present."""
        text = await resp.text()
        code = None
        message = text
        try:
            body = await resp.json(content_type=None)
            if isinstance(body, dict):
                code = body.get("code")
                message = body.get("msg", text)
        except ValueError:
            pass

        self.logger.error(f"HTTP {resp.status} on {path}: {text}")
        return BinanceAPIError(message or f"HTTP {resp.status}", status=resp.status, code=code)

    # ============================================
    # Public Market Data
    # ============================================

    async def get_candles(
        self,
        symbol: str,
        interval: str,
        limit: int = 100,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None
    ) -> List[Candle]:
        """
        Fetch historical candles (klines), oldest first.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: Kline interval (e.g., "1m", "1h", "1d")
            limit: Number of candles (capped at 1000)
            start_time: Optional start time in milliseconds since epoch
            end_time: Optional end time in milliseconds since epoch

        Returns:
            Raw (unsanitized) candles; empty list if Binance has none

        Binance Endpoint:
            GET /api/v3/klines
        """
        params = {
            "symbol": symbol.upper(),
            "interval": interval,
            "limit": min(limit, MAX_KLINES_LIMIT)
        }
        if start_time is not None:
            params["startTime"] = start_time
        if end_time is not None:
            params["endTime"] = end_time

        self.logger.info(f"Fetching candles: {symbol.upper()} {interval} (limit={params['limit']})")

        data = await self._request("GET", "/api/v3/klines", params)
        candles = [kline_to_candle(row) for row in data]

        self.logger.info(f"Fetched {len(candles)} candles for {symbol.upper()} {interval}")
        return candles

    async def get_price(self, symbol: str) -> float:
        """
        Fetch the latest price of a symbol.

        Binance Endpoint:
            GET /api/v3/ticker/price  ->  {"symbol": "BTCUSDT", "price": "42000.01"}
        """
        data = await self._request("GET", "/api/v3/ticker/price", {"symbol": symbol.upper()})
        return float(data["price"])

    async def ping(self) -> bool:
        """Return True if GET /api/v3/ping succeeds."""
        try:
            await self._request("GET", "/api/v3/ping")
            return True
        except (RuntimeError, ValueError) as e:
            self.logger.error(f"Binance ping failed: {e}")
            return False

    # ============================================
    # Signed Account / Order Endpoints
    # ============================================

    async def get_balances(self) -> Dict[str, Balance]:
        """
        Fetch all account balances keyed by asset.

        Binance Endpoint:
            GET /api/v3/account (signed)
        """
        data = await self._request("GET", "/api/v3/account", {}, signed=True)
        return {
            item["asset"]: Balance(
                asset=item["asset"],
                free=float(item["free"]),
                locked=float(item["locked"])
            )
            for item in data.get("balances", [])
        }

    async def get_balance(self, asset: str) -> Optional[Balance]:
        """Balance of a single asset, or None if the account does not list it."""
        balances = await self.get_balances()
        return balances.get(asset.upper())

    async def place_limit_order(
        self,
        side: str,
        symbol: str,
        quantity: float,
        price: float,
        time_in_force: str = "GTC"
    ) -> Dict[str, Any]:
        """
        Place a LIMIT order.

        Args:
            side: "BUY" or "SELL" (case-insensitive)
            symbol: Trading pair
            quantity: Order quantity in base asset
            price: Limit price

        Returns:
            Binance order response, passed through unchanged

        Binance Endpoint:
            POST /api/v3/order (signed)
        """
        side = side.upper()
        if side not in ("BUY", "SELL"):
            raise ValueError(f"Invalid order side: {side}")

        params = {
            "symbol": symbol.upper(),
            "side": side,
            "type": "LIMIT",
            "timeInForce": time_in_force,
            "quantity": format_decimal(quantity),
            "price": format_decimal(price)
        }

        self.logger.info(f"Placing {side} LIMIT order: {params['quantity']} {params['symbol']} @ {params['price']}")
        return await self._request("POST", "/api/v3/order", params, signed=True)
