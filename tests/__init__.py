"""
Test Suite

Contains unit tests for the gateway.

Structure:
- tests/unit/: Tests for individual components (sanitizer, cache, Binance
  clients, services, HTTP routes). Network access is always faked.

Uses pytest with pytest-asyncio for testing async functionality.
"""
