from __future__ import annotations

import logging
from typing import Protocol

import requests

from ..models.run_summary import RunSummary
from .summary import format_summary_text

"""Notification sink for the terminal run outcome.

Delivery is best effort: a failed post is logged and never changes the run
outcome or the exit code.
"""

__all__ = [
    "NOTIFY_TIMEOUT",
    "NotificationSink",
    "NullSink",
    "SlackWebhookSink",
    "build_slack_payload",
]

logger = logging.getLogger(__name__)

NOTIFY_TIMEOUT = 10  # seconds


class NotificationSink(Protocol):
    def notify(self, message: str, summary: RunSummary | None = None) -> None: ...


class NullSink:
    def notify(self, message: str, summary: RunSummary | None = None) -> None:
        pass


def build_slack_payload(message: str, summary: RunSummary | None) -> dict:
    """Incoming-webhook body; ``summary=None`` marks a failed run."""
    if summary is None:
        return {"text": message, "attachments": [{"color": "danger", "text": message}]}
    attachment = {
        "color": "good",
        "text": format_summary_text(summary),
        # 実行結果オブジェクト (inputFile, tableName, ...) をそのまま添付
        "fields": [
            {"title": key, "value": str(value), "short": True}
            for key, value in summary.to_payload().items()
        ],
    }
    return {"text": message, "attachments": [attachment]}


class SlackWebhookSink:
    def __init__(self, url: str, timeout: float = NOTIFY_TIMEOUT) -> None:
        self.url = url
        self.timeout = timeout

    def notify(self, message: str, summary: RunSummary | None = None) -> None:
        payload = build_slack_payload(message, summary)
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Slack notification failed: %s", e)
            return
        logger.info("Slack notification sent")
