"""
SQL Store

Thin execute/query layer over an async SQLAlchemy engine. Statements are
passed to the driver verbatim (``exec_driver_sql``), so callers compose them
with ``SqlStore.literal`` for every value.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from liveops.core.errors import StoreConflictError, StoreError
from liveops.database.literals import LiteralEncoder, encoder_for_dialect

logger = structlog.get_logger(__name__)


class SqlStore:
    """
    Execute and query composed SQL against the relational store.

    Each ``execute`` runs in its own transaction; a multi-row INSERT is
    therefore all-or-nothing.

    Example:
        store = SqlStore(engine)
        rows = await store.query(
            f"SELECT cohort FROM user_experiment_assignments WHERE user_id = {store.literal(user_id)}"
        )
    """

    def __init__(self, engine: AsyncEngine, encoder: Optional[LiteralEncoder] = None):
        self.engine = engine
        self.encoder = encoder or encoder_for_dialect(engine.dialect.name)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def literal(self, value: Any) -> str:
        """Render a value as a SQL literal for this store's dialect"""
        return self.encoder.encode(value)

    async def execute(self, sql: str) -> int:
        """
        Run a write statement.

        Returns:
            Rows affected as reported by the driver (-1 if unknown)

        Raises:
            StoreConflictError: A constraint rejected the write
            StoreError: Any other database failure
        """
        try:
            async with self.engine.begin() as conn:
                result = await conn.exec_driver_sql(sql)
                return result.rowcount
        except IntegrityError as e:
            logger.warning("Store constraint violation", error=str(e.orig))
            raise StoreConflictError(str(e.orig)) from e
        except SQLAlchemyError as e:
            logger.error("Store execute failed", error=str(e), error_type=type(e).__name__)
            raise StoreError(str(e)) from e

    async def query(self, sql: str) -> List[Dict[str, Any]]:
        """
        Run a read statement.

        Returns:
            Rows as plain dicts keyed by column label

        Raises:
            StoreError: Any database failure
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.exec_driver_sql(sql)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.error("Store query failed", error=str(e), error_type=type(e).__name__)
            raise StoreError(str(e)) from e

    async def close(self) -> None:
        """Dispose the underlying connection pool"""
        await self.engine.dispose()


def decode_json_column(value: Any, default: Any = None) -> Any:
    """
    Normalize a JSON column value.

    Drivers hand JSON back either decoded (dict/list) or as text/bytes
    depending on the dialect; undecodable values yield ``default``.
    """
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return default


def to_iso(value: Any) -> Optional[str]:
    """Render a timestamp column as ISO-8601 text"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
