"""Replica storage, the sync engine, and offline queries."""

from presscache.cache.analyzer import CacheAnalyzer
from presscache.cache.manager import CacheManager
from presscache.cache.store import CacheStore

__all__ = ["CacheAnalyzer", "CacheManager", "CacheStore"]
