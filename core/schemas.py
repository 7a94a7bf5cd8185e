"""
Data Schemas

Pydantic models for everything the gateway sends or receives.

Models:
    - Candle: One OHLCV bar as returned to callers
    - PriceResponse: Current price of a symbol
    - Balance / BalanceResponse: Free and locked amount of an asset
    - OrderRequest: Body of the buy/sell order endpoints
    - ErrorResponse: Error payload for failed requests
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict


# ============================================
# Candle Schema
# ============================================

class Candle(BaseModel):
    """
    Open-High-Low-Close-Volume candle.

    Attributes:
        time: Opening time of the bar (UTC)
        open: Opening price
        high: Highest price during the bar
        low: Lowest price during the bar
        close: Closing price
        volume: Traded volume in the base asset

    Notes:
        - Prices are not checked for low <= open/close <= high. Upstream data is
          passed through as received and cleaned by core.sanitizer.
        - Instances are immutable; corrected candles are new objects built
          with model_copy().

    Example:
        >>> Candle(
        ...     time=datetime.fromisoformat("2024-01-01T00:00:00+00:00"),
        ...     open=42000.0, high=42500.0, low=41800.0, close=42300.0,
        ...     volume=812.4
        ... )
    """

    time: datetime = Field(..., description="Candle opening time in UTC")
    open: float = Field(..., description="Opening price")
    high: float = Field(..., description="Highest price during the interval")
    low: float = Field(..., description="Lowest price during the interval")
    close: float = Field(..., description="Closing price")
    volume: float = Field(..., description="Traded volume in base asset")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "time": "2024-01-01T00:00:00Z",
                "open": 42000.0,
                "high": 42500.0,
                "low": 41800.0,
                "close": 42300.0,
                "volume": 812.4
            }
        }
    )


# ============================================
# Price / Balance Schemas
# ============================================

class PriceResponse(BaseModel):
    """Latest traded price for a symbol."""

    price: Optional[float] = Field(None, description="Last price, null if unknown")


class Balance(BaseModel):
    """Account balance of a single asset."""

    asset: str = Field(..., examples=["BTC", "USDT"])
    free: float = Field(..., ge=0, description="Amount available for trading")
    locked: float = Field(..., ge=0, description="Amount held in open orders")


class BalanceResponse(BaseModel):
    """Balance lookup result; balance is null when the account does not hold the asset."""

    balance: Optional[Balance] = None


# ============================================
# Order Schema
# ============================================

class OrderRequest(BaseModel):
    """
    LIMIT order request body.

    Example:
        {"symbol": "BTCUSDT", "quantity": 0.01, "price": 42000}
    """

    symbol: str = Field(..., min_length=1, description="Trading pair symbol", examples=["BTCUSDT"])
    quantity: float = Field(..., gt=0, description="Order quantity in base asset")
    price: float = Field(..., gt=0, description="Limit price in quote asset")

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.upper()


# ============================================
# Error Schema
# ============================================

class ErrorResponse(BaseModel):
    """Error payload returned with HTTP 5xx responses."""

    error: str = Field(..., description="Error message")
    details: Optional[str] = Field(None, description="Additional context")
