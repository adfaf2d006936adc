from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

"""Column configuration models.

ColumnSpec is loaded once per run (from the column config file, possibly merged
with per-header overrides) and is never modified afterwards.
"""

__all__ = [
    "FieldType",
    "ColumnSpec",
    "RunOptions",
    "DatabaseConfig",
    "sanitize_column_name",
]

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def sanitize_column_name(name: str) -> str:
    """Derive a SQL-friendly identifier from header text.

    >>> sanitize_column_name("Stage 1 Date")
    'stage_1_date'
    >>> sanitize_column_name("  Sender (Name)  ")
    'sender_name'
    """
    return _NON_ALNUM.sub("_", name.lower()).strip("_")


class FieldType(Enum):
    """Closed set of value types a column can be coerced to."""
    STRING = "string"
    NUMBER = "number"
    TIMESTAMP = "timestamp"

    @property
    def sql_type(self) -> str:
        return _SQL_TYPES[self]


_SQL_TYPES = {
    FieldType.STRING: "TEXT",
    FieldType.NUMBER: "NUMERIC",
    FieldType.TIMESTAMP: "TIMESTAMP",
}


@dataclass(frozen=True)
class ColumnSpec:
    """One configured destination column.

    ``is_hyperlink`` only matters for spreadsheet sources: a linked cell yields
    its link target unless the flag is explicitly False.
    """
    header: str  # 期待されるソースヘッダ文字列
    sql_column: str | None = None  # None -> sanitize_column_name(header)
    field_type: FieldType = FieldType.STRING
    primary: bool = False
    not_null: bool = False
    skip: bool = False
    need_index: bool = False
    is_hyperlink: bool = True

    @property
    def column_name(self) -> str:
        if self.sql_column:
            return self.sql_column
        return sanitize_column_name(self.header)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback values (environment variables win)."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class RunOptions:
    """Per-run settings for a single import."""
    input_file: str
    table: str  # schema.table
    timezone: str
    batch_size: int = 5000
    truncate: bool = False
    sheet_name: str | None = None  # None -> first sheet
    delimiter: str = ","
    null_sentinels: tuple[str, ...] = ("-",)  # "" と None は常に NULL
