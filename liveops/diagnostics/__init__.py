"""
Diagnostics Module
"""
from .health import DiagnosticsReporter

__all__ = ["DiagnosticsReporter"]
