"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Switches between Binance production and testnet credentials/URLs
- Converts comma-separated strings to lists (intervals, CORS origins)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    print(settings.active_base_url)
    print(settings.intervals_list)  # Returns a list of strings
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


# Every kline interval Binance Spot accepts
VALID_INTERVALS = [
    "1s", "1m", "3m", "5m", "15m", "30m",
    "1h", "2h", "4h", "6h", "8h", "12h",
    "1d", "3d", "1w", "1M",
]


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        binance_testnet: Use the Binance Spot testnet instead of production
        binance_api_key / binance_api_secret: Production credentials (signed endpoints only)
        binance_testnet_api_key / binance_testnet_api_secret: Testnet credentials
        binance_base_url / binance_testnet_base_url: REST base URLs
        binance_ws_url / binance_testnet_ws_url: WebSocket stream base URLs
        supported_intervals: Candlestick intervals accepted by the HTTP API
        default_candle_limit: Candles returned when the caller omits ?limit
        max_candle_limit: Upper bound for ?limit
        cors_origins: Allowed CORS origins (comma-separated)
        static_dir: Directory with the frontend build (served at /)
        cache_ttl: Lifetime of realtime cache entries in seconds
        cache_max_entries: Maximum number of cached symbols / windows
        max_subscriptions: Maximum number of live WebSocket subscriptions
    """

    # ============================================
    # Binance API Configuration
    # ============================================

    binance_testnet: bool = Field(
        default=False,
        description="Route all traffic to the Binance Spot testnet"
    )

    binance_api_key: str = Field(
        default="",
        description="Binance API key (only needed for orders and balances)"
    )

    binance_api_secret: str = Field(
        default="",
        description="Binance API secret (only needed for orders and balances)"
    )

    binance_testnet_api_key: str = Field(
        default="",
        description="Binance testnet API key"
    )

    binance_testnet_api_secret: str = Field(
        default="",
        description="Binance testnet API secret"
    )

    binance_base_url: str = Field(
        default="https://api.binance.com",
        description="Binance Spot REST base URL"
    )

    binance_testnet_base_url: str = Field(
        default="https://testnet.binance.vision",
        description="Binance Spot testnet REST base URL"
    )

    binance_ws_url: str = Field(
        default="wss://stream.binance.com:9443/ws",
        description="Binance Spot WebSocket base URL"
    )

    binance_testnet_ws_url: str = Field(
        default="wss://testnet.binance.vision/ws",
        description="Binance Spot testnet WebSocket base URL"
    )

    recv_window: int = Field(
        default=5000,
        description="recvWindow (ms) sent with signed requests"
    )

    # ============================================
    # Candle Configuration
    # ============================================

    supported_intervals: str = Field(
        default="1m,3m,5m,15m,30m,1h,2h,4h,6h,8h,12h,1d,3d,1w,1M",
        description="Comma-separated list of candlestick intervals"
    )

    default_candle_limit: int = Field(
        default=100,
        description="Number of candles returned when no limit is given"
    )

    max_candle_limit: int = Field(
        default=1000,
        description="Maximum number of candles per request (Binance Spot max is 1000)"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="Server host address"
    )

    app_port: int = Field(
        default=3000,
        description="Server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    static_dir: str = Field(
        default="www",
        description="Directory containing the static frontend"
    )

    # ============================================
    # Networking
    # ============================================

    request_timeout: int = Field(
        default=10,
        description="HTTP request timeout in seconds"
    )

    ws_max_reconnect_delay: int = Field(
        default=30,
        description="Maximum delay between WebSocket reconnection attempts (seconds)"
    )

    # ============================================
    # CORS Configuration
    # ============================================

    cors_origins: str = Field(
        default="http://maia.maiascript.com",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Realtime Cache Configuration
    # ============================================

    cache_ttl: int = Field(
        default=300,
        description="Realtime cache TTL in seconds"
    )

    cache_max_entries: int = Field(
        default=256,
        description="Maximum number of cached prices / candle windows"
    )

    max_subscriptions: int = Field(
        default=50,
        description="Maximum number of concurrent WebSocket subscriptions"
    )

    realtime_window_size: int = Field(
        default=500,
        description="Candles kept per symbol/interval by the realtime service"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    # ============================================
    # Derived Properties
    # ============================================

    @property
    def intervals_list(self) -> List[str]:
        """
        Convert comma-separated intervals string to a list.

        Intervals are case-sensitive on Binance ("1m" is one minute, "1M" one month),
        so they are only stripped, never lowercased.

        Example:
            >>> settings.intervals_list
            ['1m', '3m', '5m', ...]
        """
        return [i.strip() for i in self.supported_intervals.split(",") if i.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated CORS origins string to a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def active_api_key(self) -> str:
        """API key for the selected environment (testnet or production)."""
        return self.binance_testnet_api_key if self.binance_testnet else self.binance_api_key

    @property
    def active_api_secret(self) -> str:
        """API secret for the selected environment (testnet or production)."""
        return self.binance_testnet_api_secret if self.binance_testnet else self.binance_api_secret

    @property
    def active_base_url(self) -> str:
        """REST base URL for the selected environment."""
        return self.binance_testnet_base_url if self.binance_testnet else self.binance_base_url

    @property
    def active_ws_url(self) -> str:
        """WebSocket base URL for the selected environment."""
        return self.binance_testnet_ws_url if self.binance_testnet else self.binance_ws_url

    @property
    def has_credentials(self) -> bool:
        """True if both key and secret are set for the selected environment."""
        return bool(self.active_api_key and self.active_api_secret)


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration() -> None:
    """
    Validate critical configuration settings on application startup.

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    if not settings.intervals_list:
        raise ValueError("SUPPORTED_INTERVALS must contain at least one interval")

    for interval in settings.intervals_list:
        if interval not in VALID_INTERVALS:
            raise ValueError(
                f"Invalid interval: '{interval}'. "
                f"Must be one of: {', '.join(VALID_INTERVALS)}"
            )

    if not (1 <= settings.app_port <= 65535):
        raise ValueError(f"Invalid port number: {settings.app_port}. Must be between 1 and 65535")

    if not (1 <= settings.default_candle_limit <= settings.max_candle_limit):
        raise ValueError(
            f"DEFAULT_CANDLE_LIMIT ({settings.default_candle_limit}) must be between 1 "
            f"and MAX_CANDLE_LIMIT ({settings.max_candle_limit})"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Binance API: {settings.active_base_url} ({'testnet' if settings.binance_testnet else 'production'})")
    logger.info(f"Signed endpoints: {'enabled' if settings.has_credentials else 'disabled (no credentials)'}")
    logger.info(f"Using intervals: {', '.join(settings.intervals_list)}")
    logger.info(f"Server: {settings.app_host}:{settings.app_port}")
    logger.info(f"Log level: {settings.log_level.upper()}")
