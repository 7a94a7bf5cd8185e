"""
Storage Package

In-memory caching for realtime market data snapshots (latest prices and
sanitized candle windows). Nothing is persisted.
"""

from storage.memory_cache import MemoryCache

__all__ = ["MemoryCache"]
