from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime
from typing import Any

"""Run summary models.

RunCounters is filled incrementally while a run executes; ``finalize()``
freezes it into a RunSummary that is read-only afterwards and handed to the
notification sink.
"""

__all__ = [
    "RunCounters",
    "RunSummary",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class RunSummary:
    """Terminal outcome of a single import run."""
    input_file: str  # base name only
    table_name: str
    total_rows: int  # data rows read + malformed rows skipped by the reader
    processed_rows: int  # rows confirmed inserted and promoted
    empty_rows: int  # all-null rows discarded before loading
    skipped_rows: int  # rows the reader could not parse
    duration_seconds: float
    started_at: datetime
    finished_at: datetime
    sheet_name: str | None = None
    total_batches: int = 0
    avg_batch_seconds: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        """Render the notification object (camelCase keys)."""
        payload: dict[str, Any] = {
            "inputFile": self.input_file,
            "tableName": self.table_name,
            "totalRows": self.total_rows,
            "validRows": self.processed_rows,
            "emptyRows": self.empty_rows,
            "skippedRows": self.skipped_rows,
            "duration": f"{self.duration_seconds:.2f}",
        }
        if self.sheet_name:
            payload["sheetName"] = self.sheet_name
        return payload


class BatchStatsAccumulator:
    """Collects per-batch insert timings."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)
        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method="inclusive"
            )[18]
        return (total_batches, avg_batch_seconds, p95_batch_seconds)


class RunCounters:
    """Mutable counters for a run in progress."""

    def __init__(self, input_file: str, table_name: str, started_at: datetime,
                 sheet_name: str | None = None) -> None:
        self.input_file = input_file
        self.table_name = table_name
        self.sheet_name = sheet_name
        self.started_at = started_at
        self.data_rows = 0
        self.processed_rows = 0
        self.empty_rows = 0
        self.skipped_rows = 0
        self.batch_stats = BatchStatsAccumulator()
        self._summary: RunSummary | None = None

    def finalize(self, finished_at: datetime) -> RunSummary:
        if self._summary is not None:
            raise RuntimeError("run summary already finalized")
        total_batches, avg_batch, _ = self.batch_stats.get_stats()
        self._summary = RunSummary(
            input_file=self.input_file,
            table_name=self.table_name,
            total_rows=self.data_rows + self.skipped_rows,
            processed_rows=self.processed_rows,
            empty_rows=self.empty_rows,
            skipped_rows=self.skipped_rows,
            duration_seconds=(finished_at - self.started_at).total_seconds(),
            started_at=self.started_at,
            finished_at=finished_at,
            sheet_name=self.sheet_name,
            total_batches=total_batches,
            avg_batch_seconds=avg_batch,
        )
        return self._summary
