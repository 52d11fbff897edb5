"""
Remote Config Module
"""
from .resolver import ConfigResolver

__all__ = ["ConfigResolver"]
