from __future__ import annotations

import argparse
from contextlib import contextmanager
from unittest.mock import patch

import pytest

from tabload.cli.__main__ import _build_options, _parse_args, main as cli_main
from tabload.config.loader import ConfigError, RunConfig


@contextmanager
def _connect_to(fake_db):
    @contextmanager
    def fake_connect(dsn):
        yield fake_db.cursor()

    with patch("tabload.cli.__main__.connect", fake_connect):
        yield


def _args(*argv: str) -> argparse.Namespace:
    return _parse_args(list(argv))


def test_flags_override_run_config(write_csv):
    path = write_csv("A\n1\n")
    cfg = RunConfig(timezone="UTC", batch_size=10, truncate=True, delimiter=";")
    options = _build_options(
        _args("--input-file", str(path), "--table", "s.t", "--timezone", "Asia/Kolkata", "--batch-size", "3"),
        cfg,
    )
    assert options.timezone == "Asia/Kolkata"
    assert options.batch_size == 3
    assert options.truncate is True  # flag absent -> run config
    assert options.delimiter == ";"
    assert options.null_sentinels == ("-",)


def test_defaults_without_run_config(write_csv):
    path = write_csv("A\n1\n")
    options = _build_options(_args("--input-file", str(path), "--table", "t", "--timezone", "UTC"), RunConfig())
    assert (options.batch_size, options.truncate, options.delimiter, options.sheet_name) == (5000, False, ",", None)


@pytest.mark.parametrize(
    "extra, message",
    [
        (["--batch-size", "0"], "batch size"),
        (["--delimiter", "||"], "single character"),
    ],
)
def test_invalid_flags(write_csv, extra, message):
    path = write_csv("A\n1\n")
    with pytest.raises(ConfigError, match=message):
        _build_options(_args("--input-file", str(path), "--table", "t", "--timezone", "UTC", *extra), RunConfig())


def test_debug_mode_echoes_ddl_but_not_bulk_insert(write_csv, fake_db, capsys):
    path = write_csv("Name\nalice\n")
    with _connect_to(fake_db):
        code = cli_main(["--input-file", str(path), "--table", "t", "--timezone", "UTC", "--debug"])
    out = capsys.readouterr().out
    assert code == 0
    assert 'DEBUG SQL: CREATE TABLE "public"."t_tmp" ("name" TEXT)' in out
    assert "DEBUG SQL: COMMIT" in out
    assert "VALUES" not in out


def test_env_file_is_loaded(write_csv, fake_db, temp_workdir, monkeypatch):
    # setenv で元の値を記録し、.env による上書きをテスト後に戻す
    monkeypatch.setenv("DATABASE_URL", "postgresql://overridden/db")
    monkeypatch.delenv("PGDSN", raising=False)
    (temp_workdir / ".env").write_text("DATABASE_URL=postgresql://from-env/db\n", encoding="utf-8")
    path = write_csv("Name\nalice\n")
    seen: list[str] = []

    @contextmanager
    def fake_connect(dsn):
        seen.append(dsn)
        yield fake_db.cursor()

    with patch("tabload.cli.__main__.connect", fake_connect):
        assert cli_main(["--input-file", str(path), "--table", "t", "--timezone", "UTC"]) == 0
    assert seen == ["postgresql://from-env/db"]


def test_missing_required_flags_exit_via_argparse():
    with pytest.raises(SystemExit) as exc:
        cli_main(["--table", "t"])
    assert exc.value.code == 2


def test_sheet_name_is_passed_through(write_csv):
    path = write_csv("A\n1\n")
    options = _build_options(
        _args("--input-file", str(path), "--table", "t", "--timezone", "UTC", "--sheet-name", "Data"),
        RunConfig(),
    )
    assert options.sheet_name == "Data"
