"""
Services Package

- market_data: REST fetch -> sanitize pipeline, price/balance/order pass-throughs
- realtime: WebSocket-fed cache of live prices and sanitized candle windows
"""
