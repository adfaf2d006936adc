from __future__ import annotations

from pathlib import Path

from .base import LinkedCell, SourceReadError, TabularSource, cell_value
from .delimited import DelimitedTextSource
from .spreadsheet import XlsSource, XlsxSource

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "DelimitedTextSource",
    "LinkedCell",
    "SourceReadError",
    "TabularSource",
    "XlsSource",
    "XlsxSource",
    "cell_value",
    "open_source",
]

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xlsm", ".xls")


def open_source(path: Path, sheet_name: str | None = None, delimiter: str = ",") -> TabularSource:
    """Open a tabular source, dispatching on the file extension."""
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise SourceReadError(
            f"unsupported file type: {ext or '<none>'}. "
            f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    if not path.is_file():
        raise SourceReadError(f"input file not found: {path}")
    if ext == ".csv":
        return DelimitedTextSource(path, delimiter=delimiter)
    if ext == ".xls":
        return XlsSource(path, sheet_name=sheet_name)
    return XlsxSource(path, sheet_name=sheet_name)
