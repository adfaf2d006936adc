from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

"""Row-oriented interface shared by every tabular source.

A source yields a lazy, finite, non-restartable sequence of rows: the header
row first, then the data rows as raw cell values aligned by column position.
"""

__all__ = [
    "SourceReadError",
    "LinkedCell",
    "cell_value",
    "TabularSource",
]


class SourceReadError(Exception):
    """Raised when the source cannot be opened/read or a sheet is absent."""


@dataclass(frozen=True)
class LinkedCell:
    """Spreadsheet cell that carries a hyperlink target next to its display value."""
    text: Any
    target: str

    def __str__(self) -> str:
        return "" if self.text is None else str(self.text)


def cell_value(cell: Any, prefer_link: bool = True) -> Any:
    """Resolve a raw cell to the value handed to the transformer.

    Linked cells resolve to their target unless ``prefer_link`` is False;
    plain values pass through unchanged.
    """
    if isinstance(cell, LinkedCell):
        return cell.target if prefer_link else cell.text
    return cell


class TabularSource(ABC):
    """Base class for sources; use as a context manager."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.skipped_rows = 0  # malformed rows dropped by the reader
        self._consumed = False

    @property
    def sheet_name(self) -> str | None:
        return None

    def rows(self) -> Iterator[list[Any]]:
        """Yield the header row, then each data row. Can only be consumed once."""
        if self._consumed:
            raise SourceReadError(f"source already consumed: {self.path.name}")
        self._consumed = True
        return self._iter_rows()

    @abstractmethod
    def _iter_rows(self) -> Iterator[list[Any]]:
        ...

    def close(self) -> None:  # noqa: B027 - optional hook
        pass

    def __enter__(self) -> TabularSource:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
