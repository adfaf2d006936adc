from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from tabload.config.loader import (
    ConfigError,
    RunConfig,
    load_column_config,
    load_header_overrides,
    load_run_config,
    resolve_dsn,
)
from tabload.db.connection import connect
from tabload.logging.init import log_summary, setup_logging
from tabload.models.config_models import RunOptions
from tabload.services.notify import NotificationSink, NullSink, SlackWebhookSink
from tabload.services.pipeline import prepare_import, write_import
from tabload.services.progress import TqdmProgress
from tabload.services.summary import render_summary_line
from tabload.source import SUPPORTED_EXTENSIONS
from tabload.transform.values import InvalidTimezoneError, validate_timezone

"""Command line entry point.

Exit codes:
    0  import committed
    1  any fatal error (after the failure notification was attempted)
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1

DEFAULT_BATCH_SIZE = 5000


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="tabload", description="CSV / spreadsheet -> PostgreSQL table loader"
    )
    p.add_argument("--input-file", required=True, help="Path to the input .csv/.xlsx/.xlsm/.xls file")
    p.add_argument("--table", required=True, help="Target table (schema.table)")
    p.add_argument("--table-config", help="Column configuration (JSON/YAML); omitted -> all headers as text")
    p.add_argument("--overrides", help="Per-header overrides (JSON)")
    p.add_argument("--timezone", help="Timezone for timestamp parsing (e.g. Asia/Kolkata)")
    p.add_argument("--batch-size", type=int, help=f"Rows per batch insert (default {DEFAULT_BATCH_SIZE})")
    p.add_argument(
        "--truncate",
        action="store_true",
        default=None,
        help="Replace the destination table instead of appending",
    )
    p.add_argument("--sheet-name", help="Spreadsheet sheet (defaults to the first sheet)")
    p.add_argument("--delimiter", help="Field delimiter for delimited text (default ',')")
    p.add_argument("--slack-notify-url", help="Slack incoming-webhook URL for notifications")
    p.add_argument("--config", help="Optional YAML run configuration (defaults for the flags above)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _first(*values):
    for v in values:
        if v is not None:
            return v
    return None


def _build_options(args: argparse.Namespace, run_cfg: RunConfig) -> RunOptions:
    """Merge CLI flags over the run configuration (flags win)."""
    input_path = Path(args.input_file)
    if input_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ConfigError(
            f"unsupported file type: {input_path.suffix or '<none>'}. "
            f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    if not input_path.is_file():
        raise ConfigError(f"input file not found: {input_path}")

    timezone = _first(args.timezone, run_cfg.timezone)
    if not timezone:
        raise ConfigError("timezone is required (--timezone or run config)")
    try:
        validate_timezone(timezone)
    except InvalidTimezoneError as e:
        raise ConfigError(str(e)) from e

    batch_size = _first(args.batch_size, run_cfg.batch_size, DEFAULT_BATCH_SIZE)
    if batch_size < 1:
        raise ConfigError(f"batch size must be >= 1 (got {batch_size})")

    delimiter = _first(args.delimiter, run_cfg.delimiter, ",")
    if len(delimiter) != 1:
        raise ConfigError(f"delimiter must be a single character (got {delimiter!r})")

    extra = {}
    if run_cfg.null_sentinels is not None:
        extra["null_sentinels"] = run_cfg.null_sentinels
    return RunOptions(
        input_file=str(input_path),
        table=args.table,
        timezone=timezone,
        batch_size=batch_size,
        truncate=bool(_first(args.truncate, run_cfg.truncate, False)),
        sheet_name=args.sheet_name,
        delimiter=delimiter,
        **extra,
    )


def main(argv: list[str] | None = None) -> int:
    # None のときのみシステム引数を読む (テストで main([]) を呼ぶケースに備える)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)

    notifier: NotificationSink = NullSink()
    try:
        run_cfg = load_run_config(Path(args.config) if args.config else None)
        slack_url = _first(args.slack_notify_url, run_cfg.slack_notify_url)
        if slack_url:
            notifier = SlackWebhookSink(slack_url)
        options = _build_options(args, run_cfg)
        column_specs = load_column_config(Path(args.table_config)) if args.table_config else None
        overrides = load_header_overrides(Path(args.overrides) if args.overrides else None)
    except ConfigError as e:
        message = f"Error importing data: config: {e}"
        logger.error(message)
        notifier.notify(message)
        return EXIT_FATAL

    logger.info("Using timezone: %s", options.timezone)
    logger.info("Batch size: %d", options.batch_size)
    try:
        with TqdmProgress() as progress:
            # ソース読込・変換が成功してから DB に接続する
            prepared = prepare_import(
                options,
                column_specs=column_specs,
                overrides=overrides,
                progress=progress,
            )
            with connect(resolve_dsn(run_cfg.database)) as cursor:
                summary = write_import(cursor, prepared, options, progress=progress)
    except Exception as e:
        message = f"Error importing data: {e}"
        logger.error(message, exc_info=args.debug)
        notifier.notify(message)
        return EXIT_FATAL

    # log_summary adds the "SUMMARY " prefix itself
    log_summary(render_summary_line(summary).removeprefix("SUMMARY "))
    message = f"Successfully imported {summary.processed_rows} rows into {summary.table_name}"
    logger.info(message)
    notifier.notify(message, summary)
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
