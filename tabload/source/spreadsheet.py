from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .base import LinkedCell, SourceReadError, TabularSource

"""Spreadsheet sources.

- .xlsx / .xlsm: openpyxl. Cells carrying a hyperlink target are yielded as
  LinkedCell so the caller can choose target vs display value per column.
  (read_only モードではハイパーリンクが取得できないため通常モードで開く)
- .xls: pandas.ExcelFile (xlrd engine), display values only.

Sheet selection: ``sheet_name=None`` selects the first sheet; an unknown name
raises SourceReadError listing the available sheets.
"""

logger = logging.getLogger(__name__)


def _select_sheet(path: Path, available: list[str], requested: str | None) -> str:
    if not available:
        raise SourceReadError(f"no sheets found in {path.name}")
    if requested is None:
        return available[0]
    if requested not in available:
        raise SourceReadError(
            f'sheet "{requested}" not found in {path.name}. '
            f"Available sheets: {', '.join(available)}"
        )
    return requested


class XlsxSource(TabularSource):
    def __init__(self, path: Path, sheet_name: str | None = None) -> None:
        super().__init__(path)
        try:
            self._workbook = load_workbook(path, data_only=True)
        except FileNotFoundError as e:
            raise SourceReadError(f"input file not found: {path}") from e
        except (OSError, BadZipFile, InvalidFileException, KeyError) as e:
            raise SourceReadError(f"failed to open workbook {path.name}: {e}") from e
        try:
            self._sheet_name = _select_sheet(path, list(self._workbook.sheetnames), sheet_name)
        except SourceReadError:
            self._workbook.close()
            raise
        logger.info("Using sheet: %s (available: %s)", self._sheet_name, self._workbook.sheetnames)

    @property
    def sheet_name(self) -> str | None:
        return self._sheet_name

    def _iter_rows(self) -> Iterator[list[Any]]:
        worksheet = self._workbook[self._sheet_name]
        for cells in worksheet.iter_rows():
            row: list[Any] = []
            for cell in cells:
                link = getattr(cell, "hyperlink", None)
                target = getattr(link, "target", None) if link is not None else None
                if target:
                    row.append(LinkedCell(text=cell.value, target=target))
                else:
                    row.append(cell.value)
            yield row

    def close(self) -> None:
        self._workbook.close()


class XlsSource(TabularSource):
    """Legacy .xls workbooks; hyperlink targets are not available."""

    def __init__(self, path: Path, sheet_name: str | None = None) -> None:
        super().__init__(path)
        try:
            self._excel = pd.ExcelFile(path)
        except FileNotFoundError as e:
            raise SourceReadError(f"input file not found: {path}") from e
        except (OSError, ValueError) as e:
            raise SourceReadError(f"failed to open workbook {path.name}: {e}") from e
        names = [str(n) for n in self._excel.sheet_names]
        try:
            self._sheet_name = _select_sheet(path, names, sheet_name)
        except SourceReadError:
            self._excel.close()
            raise

    @property
    def sheet_name(self) -> str | None:
        return self._sheet_name

    def _iter_rows(self) -> Iterator[list[Any]]:
        # ヘッダなしで生読み (1行目をヘッダとして扱うのは後段)
        df = self._excel.parse(self._sheet_name, header=None, dtype=object, keep_default_na=False)
        for values in df.itertuples(index=False, name=None):
            yield [None if (not isinstance(v, str) and pd.isna(v)) else v for v in values]

    def close(self) -> None:
        self._excel.close()
