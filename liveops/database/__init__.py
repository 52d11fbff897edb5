"""
Database Module
"""
from .connection import init_database, close_database, create_engine_from_url, create_schema
from .literals import LiteralEncoder, encoder_for_dialect, to_sql_literal
from .models import Base
from .store import SqlStore

__all__ = [
    "init_database",
    "close_database",
    "create_engine_from_url",
    "create_schema",
    "LiteralEncoder",
    "encoder_for_dialect",
    "to_sql_literal",
    "Base",
    "SqlStore",
]
