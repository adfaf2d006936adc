"""Domain models for the tabular -> PostgreSQL loader."""

from .config_models import ColumnSpec, DatabaseConfig, FieldType, RunOptions, sanitize_column_name
from .run_summary import BatchStatsAccumulator, RunCounters, RunSummary
from .schema import ResolvedColumn, ResolvedSchema

__all__ = [
    # Configuration models
    "ColumnSpec",
    "DatabaseConfig",
    "FieldType",
    "RunOptions",
    "sanitize_column_name",
    # Resolution
    "ResolvedColumn",
    "ResolvedSchema",
    # Results
    "BatchStatsAccumulator",
    "RunCounters",
    "RunSummary",
]
