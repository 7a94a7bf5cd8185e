"""
FastAPI Application - Binance Candle Gateway

HTTP gateway in front of the Binance Spot API. Candles are cleaned of price
outliers (see core.sanitizer) before they are returned.

Features:
    - Current and live (WebSocket-cached) prices
    - Historical and live candles, sanitized
    - LIMIT buy/sell orders and account balances (pass-through)
    - Static frontend with SPA fallback to index.html

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 3000

Docs:
    - Swagger: http://localhost:3000/docs
    - ReDoc: http://localhost:3000/redoc
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from core.config import settings, validate_configuration
from core.logging import logger
from core.schemas import BalanceResponse, Candle, ErrorResponse, OrderRequest, PriceResponse
from exchanges.binance.api_client import BinanceAPIClient
from services.market_data import MarketDataService
from services.realtime import RealtimeService


CANDLES_ERROR_DETAILS = "Failed to fetch candle data from Binance API"


# ============================================
# Global Services
# ============================================

client = BinanceAPIClient.from_settings(settings)
market = MarketDataService(client)
realtime = RealtimeService(
    market,
    ws_url=settings.active_ws_url,
    cache_ttl=settings.cache_ttl,
    cache_max_entries=settings.cache_max_entries,
    max_subscriptions=settings.max_subscriptions,
    window_size=settings.realtime_window_size,
    max_reconnect_delay=settings.ws_max_reconnect_delay
)


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        await client.__aenter__()
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    logger.info("=== Shutting Down ===")
    try:
        await realtime.shutdown()
        await client.__aexit__(None, None, None)
        logger.info("=== Shutdown Complete ===")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Binance Candle Gateway",
    description=(
        "HTTP gateway for Binance Spot market data and orders.\n\n"
        "Candles are returned with price outliers corrected: candles whose high or low "
        "lies outside median ± 5·1.4826·MAD of the window's typical prices take the prices "
        "of the last accepted candle, keeping their own time and volume.\n\n"
        "## Endpoints\n"
        "- `GET /api/price/{symbol}` - Current price\n"
        "- `GET /api/candles/{symbol}/{interval}?limit=100` - Sanitized candles\n"
        "- `GET /api/realtime/price/{symbol}` - Price from the live ticker cache\n"
        "- `GET /api/realtime/candles/{symbol}/{interval}` - Sanitized candles from the live kline cache\n"
        "- `POST /api/order/buy` - LIMIT buy order\n"
        "- `POST /api/order/sell` - LIMIT sell order\n"
        "- `GET /api/balance/{asset}` - Account balance\n"
        "- `GET /health` - Health check\n\n"
        "Errors are returned as `{\"error\": str, \"details\": str?}` with HTTP 500."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"]
)


# ============================================
# Helpers
# ============================================

def error_response(error: str, details: Optional[str] = None, status_code: int = 500) -> JSONResponse:
    """Build the JSON error payload used by every /api endpoint."""
    payload = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


def check_interval(interval: str) -> None:
    if interval not in settings.intervals_list:
        raise HTTPException(
            status_code=422,
            detail=f"Unsupported interval '{interval}'. Supported: {', '.join(settings.intervals_list)}"
        )


# ============================================
# System Endpoints
# ============================================

@app.get("/health", tags=["System"])
async def health_check():
    """Health check - pings Binance and reports live subscriptions."""
    binance_ok = await client.ping() if client.session else False
    return {
        "status": "healthy" if binance_ok else "degraded",
        "binance": binance_ok,
        "testnet": settings.binance_testnet,
        "subscriptions": realtime.subscriptions
    }


# ============================================
# Market Data Endpoints
# ============================================

@app.get("/api/price/{symbol}", response_model=PriceResponse, tags=["Market Data"])
async def get_price(symbol: str):
    """
    Get the current price of a symbol.

    Example:
        GET /api/price/BTCUSDT
    """
    try:
        return PriceResponse(price=await market.get_price(symbol))
    except Exception as e:
        logger.error(f"Price error {symbol}: {e}")
        return error_response(str(e))


@app.get("/api/candles/{symbol}/{interval}", response_model=List[Candle], tags=["Market Data"])
async def get_candles(
    symbol: str,
    interval: str,
    limit: int = Query(
        default=settings.default_candle_limit,
        ge=1,
        le=settings.max_candle_limit,
        description="Number of candles"
    )
):
    """
    Get historical candles with outliers corrected.

    Example:
        GET /api/candles/BTCUSDT/1h?limit=100
    """
    check_interval(interval)
    try:
        return await market.get_candles(symbol, interval, limit)
    except Exception as e:
        logger.error(f"Error fetching candles {symbol}/{interval}: {e}")
        return error_response(str(e), CANDLES_ERROR_DETAILS)


@app.get("/api/realtime/price/{symbol}", response_model=PriceResponse, tags=["Realtime"])
async def get_realtime_price(symbol: str):
    """
    Get the price from the live ticker stream.

    The first call for a symbol starts the stream and answers from the REST API.

    Example:
        GET /api/realtime/price/BTCUSDT
    """
    try:
        return PriceResponse(price=await realtime.get_price(symbol))
    except Exception as e:
        logger.error(f"Realtime price error {symbol}: {e}")
        return error_response(str(e))


@app.get("/api/realtime/candles/{symbol}/{interval}", response_model=List[Candle], tags=["Realtime"])
async def get_realtime_candles(symbol: str, interval: str):
    """
    Get the live candle window, re-sanitized on every stream update.

    Example:
        GET /api/realtime/candles/BTCUSDT/1m
    """
    check_interval(interval)
    try:
        return await realtime.get_candles(symbol, interval)
    except Exception as e:
        logger.error(f"Realtime candles error {symbol}/{interval}: {e}")
        return error_response(str(e), CANDLES_ERROR_DETAILS)


# ============================================
# Account Endpoints
# ============================================

@app.post("/api/order/buy", tags=["Account"])
async def create_buy_order(order: OrderRequest):
    """
    Place a LIMIT buy order. Returns Binance's order response.

    Example:
        POST /api/order/buy  {"symbol": "BTCUSDT", "quantity": 0.001, "price": 40000}
    """
    try:
        return await market.place_order("BUY", order)
    except Exception as e:
        logger.error(f"Buy order error {order.symbol}: {e}")
        return error_response(str(e))


@app.post("/api/order/sell", tags=["Account"])
async def create_sell_order(order: OrderRequest):
    """
    Place a LIMIT sell order. Returns Binance's order response.

    Example:
        POST /api/order/sell  {"symbol": "BTCUSDT", "quantity": 0.001, "price": 50000}
    """
    try:
        return await market.place_order("SELL", order)
    except Exception as e:
        logger.error(f"Sell order error {order.symbol}: {e}")
        return error_response(str(e))


@app.get("/api/balance/{asset}", response_model=BalanceResponse, tags=["Account"])
async def get_balance(asset: str):
    """
    Get the free and locked balance of an asset.

    Example:
        GET /api/balance/USDT
    """
    try:
        return BalanceResponse(balance=await market.get_balance(asset))
    except Exception as e:
        logger.error(f"Balance error {asset}: {e}")
        return error_response(str(e))


# ============================================
# Static Frontend (must be registered last)
# ============================================

@app.get("/{full_path:path}", include_in_schema=False)
async def serve_frontend(full_path: str):
    """
    Serve files from the static directory; unknown paths fall back to index.html.
    """
    if full_path == "api" or full_path.startswith("api/"):
        return error_response("Not found", status_code=404)

    static_root = Path(settings.static_dir).resolve()
    index_file = static_root / "index.html"

    if full_path:
        requested = (static_root / full_path).resolve()
        if requested.is_file() and static_root in requested.parents:
            return FileResponse(requested)

    if index_file.is_file():
        return FileResponse(index_file)

    return error_response("Not found", "No frontend build found", status_code=404)
