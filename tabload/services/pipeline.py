from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..config.loader import ConfigError
from ..db.batch_insert import BatchInsertError
from ..db.identifiers import TableName
from ..db.loader import load, select_rows
from ..db.swap import discard_staging, promote, stage
from ..models.config_models import ColumnSpec, RunOptions
from ..models.run_summary import RunCounters, RunSummary
from ..models.schema import ResolvedSchema
from ..schema.resolver import SchemaError, infer_column_specs, resolve_schema
from ..source import SourceReadError, open_source
from ..transform.values import InvalidTimezoneError, TypedValue, transform_row, validate_timezone
from .progress import TRANSFORM_CHECKPOINT, NullProgress, ProgressObserver

"""Run pipeline: source -> schema -> transform -> stage -> load -> promote.

Strictly sequential, one logical thread per run. The transformed rows are
buffered in full before loading (known scalability limit for very large
sources).

Counts in the returned RunSummary are *confirmed* counts: processed_rows is
the number of rows inserted into staging whose promote transaction
committed. A run that raises never produces a summary.

``prepare_import`` never touches the database; ``write_import`` does the
stage/load/promote half, so callers can acquire a connection only once the
source has been read successfully.
"""

__all__ = ["NoDataError", "PreparedImport", "prepare_import", "write_import", "run_import"]

logger = logging.getLogger(__name__)


class NoDataError(Exception):
    """No non-empty data row survived; the destination is left untouched."""


def _read_and_transform(
    options: RunOptions,
    column_specs: Sequence[ColumnSpec] | None,
    overrides: Mapping[str, Mapping[str, Any]] | None,
    counters: RunCounters,
    progress: ProgressObserver,
):
    path = Path(options.input_file)
    with open_source(path, sheet_name=options.sheet_name, delimiter=options.delimiter) as source:
        counters.sheet_name = source.sheet_name
        rows = source.rows()
        header = next(rows, None)
        if header is None:
            raise SourceReadError(f"no header row found in {path.name}")

        if column_specs is None:
            specs = infer_column_specs(header, overrides)
            logger.info("No column config given; using %d source headers as string columns", len(specs))
            schema = resolve_schema(header, specs)
        else:
            schema = resolve_schema(header, column_specs, overrides)
        if not schema.columns:
            raise SchemaError(f"no configured column matched the headers of {path.name}")

        progress.phase_started("transform", None)
        transformed: list[tuple[TypedValue, ...]] = []
        for raw in rows:
            transformed.append(transform_row(raw, schema, options.timezone, options.null_sentinels))
            counters.data_rows += 1
            if counters.data_rows % TRANSFORM_CHECKPOINT == 0:
                progress.advance(TRANSFORM_CHECKPOINT)
        progress.advance(counters.data_rows % TRANSFORM_CHECKPOINT)
        progress.phase_finished("transform")

        counters.skipped_rows = source.skipped_rows
    logger.info(
        "Read %d data rows from %s (skipped=%d)", counters.data_rows, path.name, counters.skipped_rows
    )
    return schema, transformed


@dataclass
class PreparedImport:
    """Rows read, resolved and transformed; ready to be written."""
    destination: TableName
    schema: ResolvedSchema
    rows: list[tuple[TypedValue, ...]]
    counters: RunCounters


def prepare_import(
    options: RunOptions,
    column_specs: Sequence[ColumnSpec] | None = None,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
    progress: ProgressObserver | None = None,
) -> PreparedImport:
    """Read, resolve and transform the source without touching the database.

    Raises:
        ConfigError: invalid table name, batch size or timezone
        SourceReadError, SchemaError, NoDataError
    """
    if options.batch_size < 1:
        raise ConfigError(f"batch_size must be >= 1 (got {options.batch_size})")
    try:
        destination = TableName.parse(options.table)
    except ValueError as e:
        raise ConfigError(str(e)) from e
    try:
        validate_timezone(options.timezone)
    except InvalidTimezoneError as e:
        raise ConfigError(str(e)) from e

    progress = progress or NullProgress()
    counters = RunCounters(
        input_file=Path(options.input_file).name,
        table_name=str(destination),
        started_at=datetime.now(UTC),
        sheet_name=options.sheet_name,
    )
    logger.info("Import start: %s -> %s", counters.input_file, destination)

    schema, transformed = _read_and_transform(options, column_specs, overrides, counters, progress)

    kept, counters.empty_rows = select_rows(transformed)
    if counters.empty_rows:
        logger.info("Discarded %d empty rows", counters.empty_rows)
    if not kept:
        raise NoDataError(f"no valid data rows in {counters.input_file}")
    return PreparedImport(destination=destination, schema=schema, rows=kept, counters=counters)


def write_import(
    cursor: Any,
    prepared: PreparedImport,
    options: RunOptions,
    progress: ProgressObserver | None = None,
) -> RunSummary:
    """Stage, load and promote prepared rows.

    Raises:
        BatchInsertError: staging discarded, destination untouched
        TransactionError: stage or promote rolled back
    """
    progress = progress or NullProgress()
    destination = prepared.destination
    counters = prepared.counters

    stage(cursor, destination, prepared.schema, counters.started_at)

    progress.phase_started("load", len(prepared.rows))
    try:
        inserted = load(
            cursor,
            destination.staging,
            prepared.schema,
            prepared.rows,
            options.batch_size,
            progress=progress,
            stats=counters.batch_stats,
        )
    except BatchInsertError:
        # staging は破棄し、元のエラーを伝播させる
        try:
            discard_staging(cursor, destination)
        except Exception as cleanup_error:
            logger.error("failed to discard staging table %s: %s", destination.staging, cleanup_error)
        raise
    finally:
        progress.phase_finished("load")

    promote(cursor, destination, options.truncate)
    counters.processed_rows = inserted

    summary = counters.finalize(datetime.now(UTC))
    logger.info(
        "Import done: %s -> %s processed=%d empty=%d skipped=%d",
        summary.input_file,
        summary.table_name,
        summary.processed_rows,
        summary.empty_rows,
        summary.skipped_rows,
    )
    return summary


def run_import(
    cursor: Any,
    options: RunOptions,
    column_specs: Sequence[ColumnSpec] | None = None,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
    progress: ProgressObserver | None = None,
) -> RunSummary:
    """Load one tabular source into ``options.table``.

    Args:
        cursor: DB-API cursor on an autocommit connection
        options: per-run settings
        column_specs: configured columns; None -> one string column per source header
        overrides: header text -> partial ColumnSpec fields
        progress: synchronous progress observer (default: no-op)

    Raises:
        ConfigError: invalid table name, batch size or timezone
        SourceReadError, SchemaError, NoDataError: before any database work
        BatchInsertError: staging discarded, destination untouched
        TransactionError: stage or promote rolled back
    """
    prepared = prepare_import(options, column_specs, overrides, progress)
    return write_import(cursor, prepared, options, progress)
