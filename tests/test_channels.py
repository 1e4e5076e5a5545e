"""Tests for alert channels and the dispatcher."""
import json
import pytest
import requests
from unittest.mock import MagicMock, patch

from conftest import T0
from alerts.channels import (
    ChannelDispatcher, ConsoleChannel, EmailChannel, FileChannel, SlackChannel, WebhookChannel,
    build_dispatcher,
)
from models.alerts import (
    Alert, AlertChannel, AlertRule, ConsoleConfig, EmailConfig, FileConfig, MetricCondition,
    SlackConfig, WebhookConfig,
)
from models.enums import ChannelKind, Severity
from notifications.email_sender import EmailSender


@pytest.fixture
def alert():
    rule = AlertRule(id="health-critical", name="Down", category="health",
                     condition=MetricCondition("status", "eq", "down"), severity="critical")
    return Alert.create(rule, "Health Alert: Down", "Service is down", {"status": "down"}, T0)


class RecordingSender:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, alert, config):
        if self.fail:
            raise ConnectionError("boom")
        self.sent.append(alert.id)


def test_alert_id_format(alert):
    prefix, ms, suffix = alert.id.split("-")
    assert prefix == "alert"
    assert int(ms) == int(T0.timestamp() * 1000)
    assert len(suffix) == 9


def test_failing_channel_does_not_block_others(alert, caplog):
    first, broken, last = RecordingSender(), RecordingSender(fail=True), RecordingSender()
    dispatcher = ChannelDispatcher({
        ChannelKind.CONSOLE: first,
        ChannelKind.WEBHOOK: broken,
        ChannelKind.FILE: last,
    })
    channels = [
        AlertChannel(ChannelKind.CONSOLE, ConsoleConfig()),
        AlertChannel(ChannelKind.WEBHOOK, WebhookConfig(url="https://hooks.test/x")),
        AlertChannel(ChannelKind.FILE, FileConfig("alerts.log")),
    ]
    with caplog.at_level("WARNING", logger="chainwatch"):
        results = dispatcher.dispatch(alert, channels)

    assert results == [(ChannelKind.CONSOLE, True), (ChannelKind.WEBHOOK, False), (ChannelKind.FILE, True)]
    assert first.sent == [alert.id]
    assert last.sent == [alert.id]
    failures = [r for r in caplog.records if "delivery via webhook failed" in r.getMessage()]
    assert len(failures) == 1
    assert alert.id in failures[0].getMessage()


def test_disabled_channel_skipped(alert):
    sender = RecordingSender()
    dispatcher = ChannelDispatcher({ChannelKind.CONSOLE: sender})
    results = dispatcher.dispatch(alert, [AlertChannel(ChannelKind.CONSOLE, ConsoleConfig(), enabled=False)])
    assert results == []
    assert sender.sent == []


def test_file_channel_appends_json_lines(alert, tmp_path):
    channel = FileChannel(tmp_path / "alerts")
    channel.send(alert, FileConfig("critical-alerts.log"))
    channel.send(alert, FileConfig("critical-alerts.log"))
    lines = (tmp_path / "alerts" / "critical-alerts.log").read_text().splitlines()
    assert len(lines) == 2
    entry = json.loads(lines[0])
    assert entry["id"] == alert.id
    assert entry["ruleId"] == "health-critical"
    assert entry["severity"] == "critical"


def test_console_channel_prints(alert):
    console = MagicMock()
    ConsoleChannel(console).send(alert)
    printed = " ".join(str(c.args[0]) for c in console.print.call_args_list)
    assert "Health Alert: Down" in printed
    assert alert.id in printed


@patch("alerts.channels.requests.post")
def test_webhook_posts_alert(mock_post, alert):
    mock_post.return_value.raise_for_status.return_value = None
    WebhookChannel().send(alert, WebhookConfig(url="https://hooks.test/a", timeout=3))
    args, kwargs = mock_post.call_args
    assert args[0] == "https://hooks.test/a"
    assert kwargs["json"]["id"] == alert.id
    assert kwargs["timeout"] == 3


@patch("alerts.channels.requests.post")
def test_webhook_http_error_raises(mock_post, alert):
    mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("500")
    with pytest.raises(requests.HTTPError):
        WebhookChannel().send(alert, WebhookConfig(url="https://hooks.test/a"))


@patch("alerts.channels.requests.post")
def test_slack_payload(mock_post, alert):
    SlackChannel().send(alert, SlackConfig(webhook_url="https://hooks.slack.com/x", channel="#ops"))
    payload = mock_post.call_args.kwargs["json"]
    assert payload["channel"] == "#ops"
    assert "[CRITICAL] Health Alert: Down" in payload["text"]


def test_email_channel_unconfigured_returns_false(alert):
    sender = EmailSender({"email": {"from_address": ""}})
    assert EmailChannel(sender).send(alert, EmailConfig(to="ops@test.com")) is False


def test_email_channel_sends(alert):
    sender = MagicMock()
    sender.is_configured.return_value = True
    sender.send_alert.return_value = True
    assert EmailChannel(sender).send(alert, EmailConfig(to="ops@test.com", timeout=4)) is True
    kwargs = sender.send_alert.call_args.kwargs
    assert kwargs["to_address"] == "ops@test.com"
    assert kwargs["severity"] == "critical"
    assert kwargs["timeout"] == 4


def test_email_message_escapes_html():
    sender = EmailSender({"email": {"from_address": "bot@test.com"}})
    msg = sender.build_alert_message("ops@test.com", "<b>x</b>", "high", "msg & more")
    assert msg["Subject"] == "[HIGH] chainwatch: <b>x</b>"
    html = msg.get_payload()[1].get_payload(decode=True).decode()
    assert "&lt;b&gt;x&lt;/b&gt;" in html


def test_email_env_credentials_override_config():
    with patch.dict("os.environ", {"CHAINWATCH_SMTP_USER": "env_user", "CHAINWATCH_SMTP_PASS": "env_pass"}):
        sender = EmailSender({"email": {"smtp_username": "cfg", "smtp_password": "cfg"}})
    assert sender.username == "env_user"
    assert sender.password == "env_pass"


def test_build_dispatcher_covers_every_kind(settings):
    dispatcher = build_dispatcher(settings, {})
    assert set(dispatcher.senders) == set(ChannelKind)


def test_console_title_brackets_kept(alert):
    from io import StringIO
    from rich.console import Console

    buf = StringIO()
    alert.title = "Health Alert: [prod] node"
    alert.severity = Severity.LOW
    ConsoleChannel(Console(file=buf, width=200, color_system=None)).send(alert)
    out = buf.getvalue()
    assert "[i] [LOW] Health Alert: [prod] node" in out


def test_email_not_sent_reported_as_undelivered(alert):
    sender = MagicMock()
    sender.is_configured.return_value = False
    dispatcher = ChannelDispatcher({
        ChannelKind.EMAIL: EmailChannel(sender),
        ChannelKind.CONSOLE: RecordingSender(),
    })
    results = dispatcher.dispatch(alert, [
        AlertChannel(ChannelKind.EMAIL, EmailConfig(to="ops@test.com")),
        AlertChannel(ChannelKind.CONSOLE, ConsoleConfig()),
    ])
    assert results == [(ChannelKind.EMAIL, False), (ChannelKind.CONSOLE, True)]


def test_dispatcher_rejects_sender_without_send():
    with pytest.raises(TypeError):
        ChannelDispatcher({ChannelKind.CONSOLE: object()})
