from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

from .identifiers import TableName, quote_ident

"""Bulk INSERT via psycopg2.extras.execute_values.

1 バッチ = 1 ステートメント (page_size = バッチ行数)。
接続は autocommit のため、成功したバッチはそれぞれ独立に確定する。
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
]

logger = logging.getLogger(__name__)


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int


def batch_insert(
    cursor: Any,
    table: TableName,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert ``rows`` into ``table`` as one statement.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 挿入先 (staging テーブル)
    columns: 挿入列 (ResolvedSchema の順)
    rows: 行シーケンス (列順に整列済み)
    metrics_callback: receives BatchMetrics after the statement finishes,
        successful or not. Not invoked for an empty ``rows``.
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)

    cols_sql = ", ".join(quote_ident(c) for c in columns)
    sql = f"INSERT INTO {table.qualified} ({cols_sql}) VALUES %s"

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=len(rows_list))
    except Exception as e:
        raise BatchInsertError(f"batch insert into {table} failed: {e}") from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    logger.debug("inserted batch rows=%d elapsed=%.3fs", len(rows_list), end_time - start_time)
    return InsertResult(inserted_rows=len(rows_list))
