"""Alert delivery to email, Slack, webhook and Telegram channels."""

from .channels import ChannelSender, EmailSender, SlackSender, TelegramSender, WebhookSender, default_senders
from .message import AlertMessage, build_alert_message
from .notifier import ChannelResult, NotificationReport, Notifier

__all__ = [
    "AlertMessage",
    "ChannelResult",
    "ChannelSender",
    "EmailSender",
    "NotificationReport",
    "Notifier",
    "SlackSender",
    "TelegramSender",
    "WebhookSender",
    "build_alert_message",
    "default_senders",
]
