"""
SQL Literal Encoding

Statements are sent to the store as fully composed SQL text, so every value
that reaches a statement is rendered here first:

- ``None``           -> ``NULL``
- ``str``            -> ``'...'`` with embedded single quotes doubled
- ``bool``           -> ``TRUE`` / ``FALSE``
- ``int`` / ``float``-> literal digits
- ``dict`` / ``list``-> canonical JSON, quoted, plus the dialect's JSON cast
- ``datetime``       -> ISO-8601 string literal

Values are never stripped or truncated: anything that cannot be represented
raises ``ValueError``.
"""

import json
import math
from datetime import date, datetime
from typing import Any


class LiteralEncoder:
    """
    Renders Python values as SQL literals for one dialect.

    Example:
        encoder = LiteralEncoder(json_cast="::jsonb")
        encoder.encode("O'Brien")         # "'O''Brien'"
        encoder.encode({"level": 5})      # "'{\"level\":5}'::jsonb"
    """

    def __init__(self, json_cast: str = "::jsonb"):
        self.json_cast = json_cast

    def quote(self, value: str) -> str:
        """Quote a string, doubling embedded single quotes"""
        if "\x00" in value:
            raise ValueError("String literals cannot contain NUL characters")
        return "'" + value.replace("'", "''") + "'"

    def encode(self, value: Any) -> str:
        """Render ``value`` as a SQL literal"""
        if value is None:
            return "NULL"

        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"

        if isinstance(value, int):
            return str(value)

        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError(f"Non-finite number has no SQL literal: {value!r}")
            return repr(value)

        if isinstance(value, str):
            return self.quote(value)

        if isinstance(value, (datetime, date)):
            return self.quote(value.isoformat())

        if isinstance(value, (dict, list)):
            document = json.dumps(
                value,
                sort_keys=False,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
            return self.quote(document) + self.json_cast

        raise ValueError(f"Unsupported literal type: {type(value).__name__}")


POSTGRES_ENCODER = LiteralEncoder(json_cast="::jsonb")
SQLITE_ENCODER = LiteralEncoder(json_cast="")


def encoder_for_dialect(dialect_name: str) -> LiteralEncoder:
    """Pick the encoder matching a SQLAlchemy dialect name"""
    if dialect_name == "sqlite":
        return SQLITE_ENCODER
    return POSTGRES_ENCODER


def to_sql_literal(value: Any) -> str:
    """Render ``value`` as a PostgreSQL literal"""
    return POSTGRES_ENCODER.encode(value)
