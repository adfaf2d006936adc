from __future__ import annotations

from dataclasses import dataclass

from .config_models import FieldType

"""Resolved schema: the duplicate-free, ordered destination column list.

Built once per run from ColumnSpec + the source's actual header row and
immutable afterwards.
"""

__all__ = [
    "ResolvedColumn",
    "ResolvedSchema",
]


@dataclass(frozen=True)
class ResolvedColumn:
    name: str  # destination identifier (unique within the schema)
    header: str  # matched source header (whitespace-normalized)
    source_index: int  # position of the header in the source row
    field_type: FieldType
    primary: bool = False
    not_null: bool = False
    need_index: bool = False
    is_hyperlink: bool = True


@dataclass(frozen=True)
class ResolvedSchema:
    columns: tuple[ResolvedColumn, ...]
    missing_headers: tuple[str, ...] = ()  # configured headers absent from the source

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self):
        return iter(self.columns)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def primary_columns(self) -> list[ResolvedColumn]:
        return [c for c in self.columns if c.primary]

    @property
    def index_columns(self) -> list[ResolvedColumn]:
        return [c for c in self.columns if c.need_index]
