"""
Analytics Ingestion Module
"""
from .events import EventIngestionPipeline, generate_batch_id

__all__ = [
    "EventIngestionPipeline",
    "generate_batch_id",
]
