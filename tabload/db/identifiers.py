from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime

from ..models.config_models import sanitize_column_name

"""Identifier helpers: quoting, destination/staging names, index names.

PostgreSQL truncates identifiers at 63 bytes (NAMEDATALEN - 1), so generated
index names are capped here instead of being silently cut by the server.
"""

__all__ = [
    "MAX_IDENTIFIER_LENGTH",
    "DEFAULT_SCHEMA",
    "STAGING_SUFFIX",
    "quote_ident",
    "TableName",
    "index_name",
]

MAX_IDENTIFIER_LENGTH = 63
DEFAULT_SCHEMA = "public"
STAGING_SUFFIX = "_tmp"
_HASH_LENGTH = 8


def quote_ident(name: str) -> str:
    """Double-quote an identifier.

    >>> quote_ident('a"b')
    '"a""b"'
    """
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class TableName:
    schema: str
    table: str

    @classmethod
    def parse(cls, value: str) -> TableName:
        """Parse ``schema.table`` (bare ``table`` -> ``public.table``)."""
        text = (value or "").strip()
        schema, sep, table = text.partition(".")
        if not sep:
            schema, table = DEFAULT_SCHEMA, schema
        schema, table = schema.strip(), table.strip()
        if not schema or not table or "." in table:
            raise ValueError(f"invalid table name: {value!r} (expected schema.table)")
        return cls(schema=schema, table=table)

    @property
    def qualified(self) -> str:
        return f"{quote_ident(self.schema)}.{quote_ident(self.table)}"

    @property
    def staging(self) -> TableName:
        return TableName(schema=self.schema, table=f"{self.table}{STAGING_SUFFIX}")

    def __str__(self) -> str:
        return f"{self.schema}.{self.table}"


def index_name(table: str, column: str, run_ts: datetime) -> str:
    """Deterministic index name for one column of one run.

    Names that sanitizing would alter get a short hash of the original text,
    so ``Amount``/``amount`` or non-ASCII columns stay distinct.

    >>> index_name("orders", "created_at", datetime(2025, 2, 5, 19, 20, 0))
    'idx_20250205192000_created_at_orders'
    """
    raw = f"idx_{run_ts:%Y%m%d%H%M%S}_{column}_{table}"
    name = sanitize_column_name(raw)
    if name != raw:
        name = f"{name}_{_digest(raw)}"
    if len(name) <= MAX_IDENTIFIER_LENGTH:
        return name
    head = name[: MAX_IDENTIFIER_LENGTH - _HASH_LENGTH - 1].rstrip("_")
    return f"{head}_{_digest(name)}"


def _digest(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:_HASH_LENGTH]
