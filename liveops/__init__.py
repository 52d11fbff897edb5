"""
LiveOps Service

Telemetry ingestion, remote configuration and experiment assignment
for game clients.
"""

__version__ = "1.0.0"
