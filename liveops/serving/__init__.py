"""
Serving Module
"""
from .cache import ConfigCache, CacheEntry

__all__ = [
    "ConfigCache",
    "CacheEntry",
]
