from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from ..models.schema import ResolvedColumn, ResolvedSchema
from .identifiers import TableName, index_name, quote_ident

"""Staging-table lifecycle and atomic promotion into the destination.

Phases (接続は autocommit。トランザクション境界は BEGIN/COMMIT/ROLLBACK を明示発行):

1. stage   (tx)  DROP staging IF EXISTS -> CREATE staging -> CREATE INDEX ...
2. load          batch_insert (トランザクション外, バッチ単位で確定)
3. promote (tx)  replace: DROP dest IF EXISTS -> ALTER staging RENAME TO dest
                 merge:   CREATE dest IF NOT EXISTS (LIKE staging) ->
                          INSERT INTO dest SELECT * FROM staging -> DROP staging

A failed stage leaves no staging table; a failed promote leaves the
destination in its pre-promote state (staging may remain for investigation
and is dropped by the next run's stage).
"""

__all__ = [
    "TransactionError",
    "transaction",
    "column_definitions",
    "stage",
    "promote",
    "discard_staging",
]

logger = logging.getLogger(__name__)


class TransactionError(Exception):
    """Raised when a statement inside the stage or promote transaction fails."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        super().__init__(f"{phase} failed: {cause}")
        self.phase = phase
        self.cause = cause


def _execute(cursor: Any, sql: str) -> None:
    logger.debug("SQL: %s", sql)
    cursor.execute(sql)


@contextmanager
def transaction(cursor: Any, phase: str) -> Iterator[None]:
    """BEGIN ... COMMIT, or ROLLBACK and raise TransactionError."""
    _execute(cursor, "BEGIN")
    try:
        yield
    except Exception as e:
        try:
            _execute(cursor, "ROLLBACK")
        except Exception as rollback_error:
            logger.error("%s: rollback failed: %s", phase, rollback_error)
        raise TransactionError(phase, e) from e
    try:
        _execute(cursor, "COMMIT")
    except Exception as e:
        raise TransactionError(phase, e) from e


def _column_definition(column: ResolvedColumn, inline_primary: bool) -> str:
    parts = [quote_ident(column.name), column.field_type.sql_type]
    if column.primary and inline_primary:
        parts.append("PRIMARY KEY")
    elif column.not_null:
        parts.append("NOT NULL")
    return " ".join(parts)


def column_definitions(schema: ResolvedSchema) -> str:
    """Render the CREATE TABLE body.

    One primary column gets an inline PRIMARY KEY; several primary columns
    become a composite table constraint.
    """
    primary = schema.primary_columns
    inline_primary = len(primary) == 1
    defs = [_column_definition(c, inline_primary) for c in schema.columns]
    if len(primary) > 1:
        # 複合主キー列は NOT NULL を暗黙に持つ
        keys = ", ".join(quote_ident(c.name) for c in primary)
        defs.append(f"PRIMARY KEY ({keys})")
    return ", ".join(defs)


def stage(cursor: Any, destination: TableName, schema: ResolvedSchema, run_ts: datetime) -> TableName:
    """Create a fresh staging table for ``destination``; returns its name."""
    staging = destination.staging
    with transaction(cursor, "stage"):
        _execute(cursor, f"DROP TABLE IF EXISTS {staging.qualified}")
        _execute(cursor, f"CREATE TABLE {staging.qualified} ({column_definitions(schema)})")
        for column in schema.index_columns:
            name = index_name(destination.table, column.name, run_ts)
            _execute(
                cursor,
                f"CREATE INDEX {quote_ident(name)} ON {staging.qualified} ({quote_ident(column.name)})",
            )
    logger.info("Staging table ready: %s (columns=%d)", staging, len(schema))
    return staging


def promote(cursor: Any, destination: TableName, truncate: bool) -> None:
    """Move the staging contents into ``destination`` in one transaction.

    truncate=True replaces the destination wholesale; truncate=False appends
    (no dedup / upsert).
    """
    staging = destination.staging
    with transaction(cursor, "promote"):
        if truncate:
            _execute(cursor, f"DROP TABLE IF EXISTS {destination.qualified}")
            _execute(
                cursor,
                f"ALTER TABLE {staging.qualified} RENAME TO {quote_ident(destination.table)}",
            )
        else:
            _execute(
                cursor,
                f"CREATE TABLE IF NOT EXISTS {destination.qualified} "
                f"(LIKE {staging.qualified} INCLUDING ALL)",
            )
            _execute(
                cursor,
                f"INSERT INTO {destination.qualified} SELECT * FROM {staging.qualified}",
            )
            _execute(cursor, f"DROP TABLE {staging.qualified}")
    logger.info("Promoted %s into %s (mode=%s)", staging, destination, "replace" if truncate else "merge")


def discard_staging(cursor: Any, destination: TableName) -> None:
    _execute(cursor, f"DROP TABLE IF EXISTS {destination.staging.qualified}")
