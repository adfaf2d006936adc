from __future__ import annotations

import logging
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import requests

from tabload.models.run_summary import RunSummary
from tabload.services.notify import NullSink, SlackWebhookSink, build_slack_payload

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"
NOW = datetime(2025, 2, 5, tzinfo=UTC)
SUMMARY = RunSummary(
    input_file="orders.csv",
    table_name="sales.orders",
    total_rows=3,
    processed_rows=2,
    empty_rows=1,
    skipped_rows=0,
    duration_seconds=0.5,
    started_at=NOW,
    finished_at=NOW,
)


def test_success_payload():
    payload = build_slack_payload("Imported 2 rows", SUMMARY)
    assert payload["text"] == "Imported 2 rows"
    (attachment,) = payload["attachments"]
    assert attachment["color"] == "good"
    assert "*Valid rows:* 2" in attachment["text"]


def test_success_payload_carries_run_outcome_fields():
    (attachment,) = build_slack_payload("Imported 2 rows", SUMMARY)["attachments"]
    fields = {f["title"]: f["value"] for f in attachment["fields"]}
    assert fields == {k: str(v) for k, v in SUMMARY.to_payload().items()}
    assert fields["validRows"] == "2"
    assert fields["duration"] == "0.50"


def test_failure_payload():
    payload = build_slack_payload("Error importing data: boom", None)
    assert payload["attachments"] == [{"color": "danger", "text": "Error importing data: boom"}]


def test_slack_sink_posts_json():
    response = MagicMock()
    with patch("tabload.services.notify.requests.post", return_value=response) as post:
        SlackWebhookSink(WEBHOOK).notify("Imported 2 rows", SUMMARY)
    post.assert_called_once()
    args, kwargs = post.call_args
    assert args == (WEBHOOK,)
    assert kwargs["json"] == build_slack_payload("Imported 2 rows", SUMMARY)
    assert kwargs["timeout"] == 10
    response.raise_for_status.assert_called_once()


def test_slack_delivery_failure_is_logged_not_raised(caplog):
    with patch(
        "tabload.services.notify.requests.post",
        side_effect=requests.ConnectionError("connection refused"),
    ):
        with caplog.at_level(logging.WARNING, logger="tabload"):
            SlackWebhookSink(WEBHOOK).notify("Error importing data: boom")
    assert "Slack notification failed" in caplog.text


def test_slack_http_error_is_logged(caplog):
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
    with patch("tabload.services.notify.requests.post", return_value=response):
        with caplog.at_level(logging.WARNING, logger="tabload"):
            SlackWebhookSink(WEBHOOK).notify("msg", SUMMARY)
    assert "404" in caplog.text


def test_null_sink_does_nothing():
    with patch("tabload.services.notify.requests.post") as post:
        NullSink().notify("msg", SUMMARY)
    post.assert_not_called()
