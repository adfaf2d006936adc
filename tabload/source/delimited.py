from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pandas as pd

from .base import SourceReadError, TabularSource

"""Delimited-text (CSV) source backed by pandas.

- BOM は encoding="utf-8-sig" で除去
- 先頭/末尾の空白は各セルで除去 (skipinitialspace + strip)
- 列数が不揃いな行: 不足分は None で補完、余剰分が空なら切り詰め
- 余剰列に値がある行は malformed としてスキップし skipped_rows に計上 (例外にしない)
"""

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_ROWS = 10_000


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if pd.isna(value):
        return None
    return value


class DelimitedTextSource(TabularSource):
    def __init__(
        self,
        path: Path,
        delimiter: str = ",",
        encoding: str = "utf-8-sig",
        chunk_rows: int = DEFAULT_CHUNK_ROWS,
    ) -> None:
        super().__init__(path)
        self.delimiter = delimiter
        self.encoding = encoding
        self.chunk_rows = chunk_rows
        self._width: int | None = None

    def _read_options(self) -> dict[str, Any]:
        return {
            "sep": self.delimiter,
            "header": None,
            "dtype": str,
            "keep_default_na": False,
            "encoding": self.encoding,
            "skipinitialspace": True,
            "quotechar": '"',
            "doublequote": True,
            "engine": "python",
        }

    def _header_width(self) -> int:
        try:
            head = pd.read_csv(self.path, nrows=1, **self._read_options())
        except FileNotFoundError as e:
            raise SourceReadError(f"input file not found: {self.path}") from e
        except pd.errors.EmptyDataError as e:
            raise SourceReadError(f"input file is empty: {self.path.name}") from e
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise SourceReadError(f"failed to read {self.path.name}: {e}") from e
        return head.shape[1]

    def _on_bad_line(self, fields: list[str]) -> list[str] | None:
        width = self._width or 0
        extra = fields[width:]
        if all(not (f or "").strip() for f in extra):
            # 末尾の余分な区切り文字のみ -> 許容
            return fields[:width]
        self.skipped_rows += 1
        logger.warning(
            "skipped malformed row in %s: expected %d fields, got %d",
            self.path.name,
            width,
            len(fields),
        )
        return None

    def _iter_rows(self) -> Iterator[list[Any]]:
        self._width = self._header_width()
        options = self._read_options()
        try:
            with pd.read_csv(
                self.path,
                names=list(range(self._width)),
                skip_blank_lines=False,
                on_bad_lines=self._on_bad_line,
                chunksize=self.chunk_rows,
                **options,
            ) as reader:
                header_seen = False
                for chunk in reader:
                    for values in chunk.itertuples(index=False, name=None):
                        row = [_clean(v) for v in values]
                        if not header_seen:
                            # ヘッダ前の空行は読み飛ばす
                            if all(v is None or v == "" for v in row):
                                continue
                            header_seen = True
                        yield row
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise SourceReadError(f"failed to read {self.path.name}: {e}") from e
