"""Alert system module."""
from alerts.engine import AlertEngine
from alerts.rules_store import RuleStore
from alerts.cooldown import CooldownTracker
from alerts.channels import ChannelDispatcher, ConsoleChannel, FileChannel, WebhookChannel, SlackChannel, EmailChannel
