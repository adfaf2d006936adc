from __future__ import annotations

from ..models.run_summary import RunSummary

"""Summary rendering: the SUMMARY log line and the human-readable text block
attached to notifications.
"""

__all__ = ["format_elapsed", "render_summary_line", "format_summary_text"]


def format_elapsed(seconds: float) -> str:
    """Compact elapsed-seconds text.

    >>> format_elapsed(2.0)
    '2'
    >>> format_elapsed(1.23456)
    '1.235'
    >>> format_elapsed(0.0004)
    '0.0004'
    """
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(summary: RunSummary) -> str:
    """Render the single-line SUMMARY record.

    Format:
    SUMMARY file={f} table={t} total={n} processed={n} empty={n} skipped={n} elapsed_sec={s}

    log_summary() adds the label itself; strip the leading ``SUMMARY `` when
    logging through the labeled formatter.
    """
    return (
        f"SUMMARY file={summary.input_file} "
        f"table={summary.table_name} "
        f"total={summary.total_rows} "
        f"processed={summary.processed_rows} "
        f"empty={summary.empty_rows} "
        f"skipped={summary.skipped_rows} "
        f"elapsed_sec={format_elapsed(summary.duration_seconds)}"
    )


def format_summary_text(summary: RunSummary) -> str:
    """Multi-line summary for chat notifications."""
    lines = [
        f"*File:* {summary.input_file}",
        f"*Table:* {summary.table_name}",
    ]
    if summary.sheet_name:
        lines.append(f"*Sheet:* {summary.sheet_name}")
    lines.extend(
        [
            f"*Total rows:* {summary.total_rows}",
            f"*Valid rows:* {summary.processed_rows}",
            f"*Empty rows:* {summary.empty_rows}",
            f"*Skipped rows:* {summary.skipped_rows}",
            f"*Duration:* {summary.duration_seconds:.2f}s",
        ]
    )
    return "\n".join(lines)
