"""
FastAPI Application Package

Contains the HTTP entry point of the gateway: REST endpoints for prices,
sanitized candles, orders and balances, plus the static frontend.
"""
