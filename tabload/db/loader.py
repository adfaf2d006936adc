from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any

from ..models.run_summary import BatchStatsAccumulator
from ..models.schema import ResolvedSchema
from .batch_insert import BatchMetrics, batch_insert
from .identifiers import TableName

if TYPE_CHECKING:
    from ..services.progress import ProgressObserver

"""Batch loader: row selection + fixed-size batches into the staging table.

Batches run outside any explicit transaction; a failure is fatal and is not
retried (BatchInsertError propagates to the caller, which discards staging).
"""

__all__ = ["select_rows", "iter_batches", "load"]

logger = logging.getLogger(__name__)


def select_rows(rows: Sequence[Sequence[Any]]) -> tuple[list[Sequence[Any]], int]:
    """Drop rows whose every value is None.

    Returns (kept rows, number of empty rows dropped).

    >>> select_rows([(1, None), (None, None), (None, "x")])
    ([(1, None), (None, 'x')], 1)
    """
    kept: list[Sequence[Any]] = []
    empty = 0
    for row in rows:
        if all(v is None for v in row):
            empty += 1
        else:
            kept.append(row)
    return kept, empty


def iter_batches(rows: Sequence[Sequence[Any]], batch_size: int) -> Iterator[Sequence[Sequence[Any]]]:
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1 (got {batch_size})")
    for start in range(0, len(rows), batch_size):
        yield rows[start:start + batch_size]


def load(
    cursor: Any,
    staging: TableName,
    schema: ResolvedSchema,
    rows: Sequence[Sequence[Any]],
    batch_size: int,
    progress: ProgressObserver | None = None,
    stats: BatchStatsAccumulator | None = None,
) -> int:
    """Insert ``rows`` into ``staging`` in batches of ``batch_size``.

    Returns the number of rows confirmed inserted.
    """
    columns = schema.names
    total_batches = (len(rows) + batch_size - 1) // batch_size if batch_size > 0 else 0
    logger.info("Loading %d rows into %s (batches=%d)", len(rows), staging, total_batches)

    def _record(metrics: BatchMetrics) -> None:
        if stats is not None:
            stats.add_batch_time(metrics.elapsed_seconds)

    inserted = 0
    for number, batch in enumerate(iter_batches(rows, batch_size), start=1):
        result = batch_insert(cursor, staging, columns, batch, metrics_callback=_record)
        inserted += result.inserted_rows
        logger.debug("batch %d/%d done (rows=%d)", number, total_batches, result.inserted_rows)
        if progress is not None:
            progress.advance(result.inserted_rows)
    return inserted
