from .notify import NotificationSink, NullSink, SlackWebhookSink, build_slack_payload
from .pipeline import NoDataError, PreparedImport, prepare_import, run_import, write_import
from .progress import NullProgress, ProgressObserver, TqdmProgress, is_tty_enabled
from .summary import format_summary_text, render_summary_line

__all__ = [
    "NotificationSink",
    "NullSink",
    "SlackWebhookSink",
    "build_slack_payload",
    "NoDataError",
    "PreparedImport",
    "prepare_import",
    "run_import",
    "write_import",
    "NullProgress",
    "ProgressObserver",
    "TqdmProgress",
    "is_tty_enabled",
    "format_summary_text",
    "render_summary_line",
]
