"""Alert delivery channels and the fault-isolating dispatcher."""
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

import requests
from rich.console import Console
from rich.markup import escape

from models.enums import ChannelKind, Severity

logger = logging.getLogger("chainwatch.alerts.channels")

SEVERITY_STYLES = {
    Severity.LOW: "bold blue",
    Severity.MEDIUM: "bold yellow",
    Severity.HIGH: "bold red",
    Severity.CRITICAL: "bold white on red",
}
SEVERITY_ICONS = {
    Severity.LOW: "i",
    Severity.MEDIUM: "!",
    Severity.HIGH: "!!",
    Severity.CRITICAL: "!!!",
}


@runtime_checkable
class ChannelSender(Protocol):
    """Delivers one alert. Raising, or returning False, means it was not delivered."""

    def send(self, alert, config) -> Optional[bool]: ...


class ConsoleChannel:
    """Print alerts to terminal with rich formatting."""

    def __init__(self, console=None):
        self.console = console or Console()

    def send(self, alert, config=None):
        style = SEVERITY_STYLES.get(alert.severity, "")
        icon = SEVERITY_ICONS.get(alert.severity, "?")
        header = escape(f"[{icon}] [{alert.severity.value.upper()}] {alert.title}")
        self.console.print(f"\n[{style}]{header}[/]")
        self.console.print(f"Message: {alert.message}", style=style.replace("bold ", ""), markup=False)
        self.console.print(f"[dim]Time: {alert.timestamp.isoformat()}  Alert ID: {alert.id}[/dim]")
        if alert.metadata:
            self.console.print(f"[dim]Metadata: {escape(json.dumps(alert.metadata, default=str))}[/dim]")


class FileChannel:
    """Append one JSON line per alert to a named file under the alerts directory."""

    def __init__(self, alerts_dir):
        self.alerts_dir = Path(alerts_dir)

    def send(self, alert, config):
        self.alerts_dir.mkdir(parents=True, exist_ok=True)
        entry = alert.to_dict()
        with open(self.alerts_dir / config.filename, "a") as f:
            f.write(json.dumps(entry, default=str) + "\n")


class WebhookChannel:
    """POST the alert as JSON. One attempt, short timeout, no retry."""

    def send(self, alert, config):
        resp = requests.post(config.url, json=alert.to_dict(), timeout=config.timeout)
        resp.raise_for_status()
        logger.debug(f"Webhook {config.url} accepted alert {alert.id}")


class SlackChannel:
    """Post to a Slack incoming webhook."""

    def send(self, alert, config):
        text = (
            f"*[{alert.severity.value.upper()}] {alert.title}*\n"
            f"{alert.message}\n"
            f"_{alert.timestamp.isoformat()} | {alert.id}_"
        )
        payload = {"text": text}
        if config.channel:
            payload["channel"] = config.channel
        resp = requests.post(config.webhook_url, json=payload, timeout=config.timeout)
        resp.raise_for_status()


class EmailChannel:
    """Send the alert as an individual email through the SMTP sender."""

    def __init__(self, sender):
        self.sender = sender

    def send(self, alert, config) -> bool:
        if not self.sender.is_configured():
            logger.debug(f"Email not configured, skipping alert {alert.id}")
            return False
        return self.sender.send_alert(
            to_address=config.to,
            title=alert.title,
            severity=alert.severity.value,
            message=alert.message,
            metadata=alert.metadata,
            timeout=config.timeout,
        )


class ChannelDispatcher:
    """Fan an alert out to its channels; one channel failing never blocks the rest."""

    def __init__(self, senders: Dict[ChannelKind, ChannelSender]):
        self.senders = dict(senders)
        for kind, sender in self.senders.items():
            if not isinstance(sender, ChannelSender):
                raise TypeError(f"Sender for {kind} has no send(alert, config) method")

    def dispatch(self, alert, channels):
        """Deliver to every enabled channel. Returns [(kind, delivered), ...]."""
        results = []
        for channel in channels:
            if not channel.enabled:
                continue
            sender = self.senders.get(channel.kind)
            if sender is None:
                logger.warning(f"No sender registered for channel type {channel.kind.value}")
                results.append((channel.kind, False))
                continue
            try:
                delivered = sender.send(alert, channel.config) is not False
                results.append((channel.kind, delivered))
            except Exception as e:
                logger.warning(f"Alert {alert.id} delivery via {channel.kind.value} failed: {e}")
                results.append((channel.kind, False))
        return results


def build_dispatcher(settings, config=None, console=None):
    """Dispatcher wired with every channel kind."""
    from notifications.email_sender import EmailSender

    return ChannelDispatcher({
        ChannelKind.CONSOLE: ConsoleChannel(console),
        ChannelKind.FILE: FileChannel(settings.alerts_dir),
        ChannelKind.WEBHOOK: WebhookChannel(),
        ChannelKind.SLACK: SlackChannel(),
        ChannelKind.EMAIL: EmailChannel(EmailSender(config or {})),
    })
