"""
Unified Logging Configuration

Sets up a centralized logging system for the whole service. Modules import
the logger from here instead of using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Server starting")

    log = get_logger(__name__)  # "candlegate.<module>"
    log.debug("Fetched 100 candles")

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file (default INFO).
"""

import logging
import sys
from typing import Optional


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured "candlegate" logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] candlegate: Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger("candlegate")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: e.g. "candlegate.exchanges.binance.api_client"
    """
    return logging.getLogger(f"candlegate.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(exchange: str, method: str, endpoint: str, params: dict = None) -> None:
    """
    Log an outgoing API request with consistent formatting.

    Signatures are never logged.

    Example:
        >>> log_api_request("binance", "GET", "/api/v3/klines", {"symbol": "BTCUSDT", "interval": "1h"})
        [DEBUG] API Request: binance GET /api/v3/klines | Params: {'symbol': 'BTCUSDT', 'interval': '1h'}
    """
    if params:
        safe_params = {k: v for k, v in params.items() if k != "signature"}
        logger.debug(f"API Request: {exchange} {method} {endpoint} | Params: {safe_params}")
    else:
        logger.debug(f"API Request: {exchange} {method} {endpoint}")


def log_api_response(exchange: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("binance", "/api/v3/klines", 200, 0.342)
        [DEBUG] API Response: binance /api/v3/klines | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")


def log_websocket_event(exchange: str, event: str, stream: str = None, details: str = None) -> None:
    """
    Log a WebSocket event with consistent formatting.

    Example:
        >>> log_websocket_event("binance", "connected", "btcusdt@kline_1m")
        [INFO] WebSocket: binance connected | Stream: btcusdt@kline_1m
    """
    stream_str = f" | Stream: {stream}" if stream else ""
    details_str = f" | {details}" if details else ""

    level = logging.ERROR if event == "error" else logging.INFO
    logger.log(level, f"WebSocket: {exchange} {event}{stream_str}{details_str}")


logger.debug("Logging system initialized")
