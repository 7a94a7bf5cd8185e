"""
Core Package

Exchange-agnostic building blocks:
- config: Pydantic Settings loaded from environment / .env
- logging: Shared "candlegate" logger
- schemas: Pydantic models (Candle, PriceResponse, OrderRequest, ...)
- sanitizer: Median/MAD outlier detection and correction for candles
"""
