from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from tabload.models.config_models import FieldType
from tabload.models.schema import ResolvedColumn, ResolvedSchema
from tabload.source.base import LinkedCell
from tabload.transform.values import (
    InvalidTimezoneError,
    is_null,
    transform_row,
    transform_value,
    validate_timezone,
)

KOLKATA = "Asia/Kolkata"


@pytest.mark.parametrize("raw", [None, "", "   ", "-", " - ", float("nan")])
@pytest.mark.parametrize("field_type", list(FieldType))
def test_null_sentinels_apply_to_every_type(raw, field_type):
    assert transform_value(raw, field_type, KOLKATA) is None


def test_extra_null_sentinels():
    assert is_null("N/A", null_sentinels={"-", "N/A"})
    assert not is_null("N/A")
    assert transform_value("n.a.", FieldType.STRING, KOLKATA, null_sentinels={"n.a."}) is None


def test_string_collapses_whitespace():
    assert transform_value("  foo \n  bar\tbaz ", FieldType.STRING, KOLKATA) == "foo bar baz"


def test_string_from_numeric_cell():
    assert transform_value(42.0, FieldType.STRING, KOLKATA) == "42"
    assert transform_value(1.5, FieldType.STRING, KOLKATA) == "1.5"
    assert transform_value(7, FieldType.STRING, KOLKATA) == "7"


@pytest.mark.parametrize("raw", ["-", "N/A", "", "abc", "1,2"])
def test_number_non_numeric_yields_none(raw):
    assert transform_value(raw, FieldType.NUMBER, KOLKATA) is None


def test_number_non_numeric_logs_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="tabload"):
        assert transform_value("N/A", FieldType.NUMBER, KOLKATA, column="amount") is None
    assert "amount" in caplog.text


def test_number_parsing():
    assert transform_value(" 12.50 ", FieldType.NUMBER, KOLKATA) == Decimal("12.50")
    assert transform_value("-3", FieldType.NUMBER, KOLKATA) == Decimal("-3")
    assert transform_value("1e3", FieldType.NUMBER, KOLKATA) == Decimal("1000")
    assert transform_value(5, FieldType.NUMBER, KOLKATA) == 5
    assert transform_value(2.25, FieldType.NUMBER, KOLKATA) == 2.25
    assert transform_value(True, FieldType.NUMBER, KOLKATA) == 1


def test_number_rejects_non_finite():
    assert transform_value("NaN", FieldType.NUMBER, KOLKATA) is None
    assert transform_value("Infinity", FieldType.NUMBER, KOLKATA) is None
    assert transform_value(float("inf"), FieldType.NUMBER, KOLKATA) is None


def test_timestamp_text_in_kolkata():
    value = transform_value("2025-02-05 19:20", FieldType.TIMESTAMP, KOLKATA)
    assert value == datetime(2025, 2, 5, 13, 50, tzinfo=UTC)


def test_timestamp_text_variants():
    assert transform_value("2025-02-05 19:20:30", FieldType.TIMESTAMP, "UTC") == datetime(
        2025, 2, 5, 19, 20, 30, tzinfo=UTC
    )
    assert transform_value("2025-02-05", FieldType.TIMESTAMP, KOLKATA) == datetime(
        2025, 2, 4, 18, 30, tzinfo=UTC
    )


def test_timestamp_spreadsheet_serial():
    # 45693.5 = 2025-02-05 12:00 (1900 date system)
    value = transform_value(45693.5, FieldType.TIMESTAMP, KOLKATA)
    assert value == datetime(2025, 2, 5, 6, 30, tzinfo=UTC)


def test_timestamp_naive_datetime_cell_uses_timezone():
    value = transform_value(datetime(2025, 2, 5, 19, 20), FieldType.TIMESTAMP, KOLKATA)
    assert value == datetime(2025, 2, 5, 13, 50, tzinfo=UTC)


@pytest.mark.parametrize("raw", ["05/02/2025", "2025-13-01 10:00", "yesterday", "2025-02-30"])
def test_timestamp_invalid_yields_none(raw, caplog):
    with caplog.at_level(logging.WARNING, logger="tabload"):
        assert transform_value(raw, FieldType.TIMESTAMP, KOLKATA, column="created_at") is None
    assert "created_at" in caplog.text


def test_timestamp_nonexistent_local_time_yields_none():
    # 2025-03-09 02:30 does not exist in New York (DST gap)
    assert transform_value("2025-03-09 02:30", FieldType.TIMESTAMP, "America/New_York") is None


def test_validate_timezone():
    assert validate_timezone(KOLKATA) == KOLKATA
    with pytest.raises(InvalidTimezoneError):
        validate_timezone("Mars/Olympus_Mons")


def test_timestamp_with_unknown_timezone_yields_none(caplog):
    with caplog.at_level(logging.WARNING, logger="tabload"):
        assert transform_value("2025-02-05 10:00", FieldType.TIMESTAMP, "Mars/Base", column="opened") is None
    assert "opened" in caplog.text


def _schema(*columns: ResolvedColumn) -> ResolvedSchema:
    return ResolvedSchema(columns=tuple(columns))


def test_transform_row_projects_and_pads():
    schema = _schema(
        ResolvedColumn(name="note", header="Note", source_index=2, field_type=FieldType.STRING),
        ResolvedColumn(name="amount", header="Amount", source_index=0, field_type=FieldType.NUMBER),
        ResolvedColumn(name="extra", header="Extra", source_index=5, field_type=FieldType.STRING),
    )
    row = transform_row(["10", "ignored", " hello "], schema, KOLKATA)
    assert row == ("hello", Decimal("10"), None)


def test_transform_row_linked_cells():
    link = LinkedCell(text="Evidence", target="https://example.com/e/1")
    schema = _schema(
        ResolvedColumn(name="url", header="Evidence", source_index=0, field_type=FieldType.STRING),
        ResolvedColumn(
            name="label", header="Evidence", source_index=0, field_type=FieldType.STRING,
            is_hyperlink=False,
        ),
    )
    assert transform_row([link], schema, KOLKATA) == ("https://example.com/e/1", "Evidence")
