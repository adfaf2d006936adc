from __future__ import annotations

import logging
import math
import re
from collections.abc import Collection, Sequence
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, assert_never

import pandas as pd
from openpyxl.utils.datetime import from_excel

from ..models.config_models import FieldType
from ..models.schema import ResolvedSchema
from ..source.base import cell_value

"""Cell value coercion.

transform_value() is total: every failure path yields None plus a WARN log
line, so a malformed cell never disqualifies the rest of its row.

NULL 判定 (全型共通, 型別処理の前に適用):
- None / NaN
- 空文字 (空白のみを含む)
- "-" (および設定で追加された null_sentinels)
"""

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
DEFAULT_NULL_SENTINELS: frozenset[str] = frozenset({"-"})
TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d")

TypedValue = str | int | float | Decimal | datetime | None


class InvalidTimezoneError(ValueError):
    pass


def validate_timezone(timezone: str) -> str:
    """Fail fast on an unknown timezone name (checked once per run)."""
    try:
        pd.Timestamp("2000-01-01 00:00").tz_localize(timezone)
    except (KeyError, ValueError, TypeError, AttributeError) as e:
        raise InvalidTimezoneError(f"unknown timezone: {timezone}") from e
    return timezone


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def is_null(value: Any, null_sentinels: Collection[str] = DEFAULT_NULL_SENTINELS) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    if isinstance(value, str):
        text = normalize_whitespace(value)
        return text == "" or text in null_sentinels
    return False


def _to_string(value: Any) -> str:
    if isinstance(value, str):
        return normalize_whitespace(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return normalize_whitespace(str(value))


def _to_number(value: Any, column: str | None) -> int | float | Decimal | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, Decimal)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    text = normalize_whitespace(str(value))
    try:
        number = Decimal(text)
    except InvalidOperation:
        logger.warning("Non-numeric value column=%s value=%r", column, value)
        return None
    if not number.is_finite():
        logger.warning("Non-finite numeric value column=%s value=%r", column, value)
        return None
    return number


def _parse_timestamp_text(text: str) -> datetime | None:
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _to_timestamp(value: Any, timezone: str, column: str | None) -> datetime | None:
    if isinstance(value, datetime):
        local = value
    elif isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        # スプレッドシートの日付シリアル値 (1900 date system)
        local = from_excel(float(value))
        if local is None or not isinstance(local, datetime):
            logger.warning("Invalid date serial column=%s value=%r", column, value)
            return None
    else:
        local = _parse_timestamp_text(normalize_whitespace(str(value)))
        if local is None:
            logger.warning("Invalid date format column=%s value=%r", column, value)
            return None

    ts = pd.Timestamp(local)
    if ts.tzinfo is None:
        ts = ts.tz_localize(timezone, ambiguous="NaT", nonexistent="NaT")
    if ts is pd.NaT:
        logger.warning("Invalid local time in %s column=%s value=%r", timezone, column, value)
        return None
    return ts.tz_convert("UTC").to_pydatetime()


def transform_value(
    raw: Any,
    field_type: FieldType,
    timezone: str,
    *,
    column: str | None = None,
    null_sentinels: Collection[str] = DEFAULT_NULL_SENTINELS,
) -> TypedValue:
    """Coerce one raw cell to its typed value; never raises."""
    if is_null(raw, null_sentinels):
        return None
    try:
        if field_type is FieldType.STRING:
            return _to_string(raw)
        elif field_type is FieldType.NUMBER:
            return _to_number(raw, column)
        elif field_type is FieldType.TIMESTAMP:
            return _to_timestamp(raw, timezone, column)
        else:
            assert_never(field_type)
    except (ValueError, TypeError, OverflowError, ArithmeticError, LookupError) as e:
        logger.warning("Error transforming value column=%s value=%r: %s", column, raw, e)
        return None


def transform_row(
    raw_row: Sequence[Any],
    schema: ResolvedSchema,
    timezone: str,
    null_sentinels: Collection[str] = DEFAULT_NULL_SENTINELS,
) -> tuple[TypedValue, ...]:
    """Project a raw source row onto the schema and coerce every cell.

    Rows shorter than the header are padded with None.
    """
    width = len(raw_row)
    values = []
    for col in schema.columns:
        raw = raw_row[col.source_index] if col.source_index < width else None
        raw = cell_value(raw, prefer_link=col.is_hyperlink)
        values.append(
            transform_value(
                raw, col.field_type, timezone, column=col.name, null_sentinels=null_sentinels
            )
        )
    return tuple(values)
