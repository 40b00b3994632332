"""Notification channel transports.

Each sender delivers one rendered alert to one destination and reports
success as a bool. Senders may also raise; the notifier treats that as a
failed delivery for that channel only.
"""

from __future__ import annotations

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

import httpx
import structlog

from ..config import NotificationConfig
from ..models import AlertChannel, ChannelType
from .message import AlertMessage, render_email_html, render_slack, render_text, render_webhook


logger = structlog.get_logger(__name__)

TELEGRAM_MAX_MESSAGE_LEN = 3900


class ChannelSender(ABC):
    """Delivers an alert message over one kind of channel."""

    channel_type: ChannelType

    @abstractmethod
    async def deliver(self, message: AlertMessage, channel: AlertChannel) -> bool:
        """Send ``message`` to ``channel.destination``; True when delivered."""


class EmailSender(ChannelSender):
    channel_type = ChannelType.EMAIL

    def __init__(self, config: NotificationConfig):
        self.config = config

    def _is_configured(self) -> bool:
        return bool(self.config.smtp_user and self.config.smtp_password)

    def _build(self, message: AlertMessage, recipient: str) -> EmailMessage:
        sender = self.config.from_address or self.config.smtp_user or "alerts@localhost"
        mail = EmailMessage()
        mail["Subject"] = message.title
        mail["From"] = f"Uptime Alerts <{sender}>"
        mail["To"] = recipient
        mail.set_content(render_text(message, dashboard_url=self.config.dashboard_url))
        mail.add_alternative(render_email_html(message, dashboard_url=self.config.dashboard_url), subtype="html")
        return mail

    def _send_sync(self, mail: EmailMessage) -> None:
        with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=self.config.http_timeout_seconds) as server:
            if self.config.smtp_use_tls:
                server.starttls()
            server.login(str(self.config.smtp_user), str(self.config.smtp_password))
            server.send_message(mail)

    async def deliver(self, message: AlertMessage, channel: AlertChannel) -> bool:
        if not self._is_configured():
            logger.warning("Email credentials not configured; email alert skipped", target_id=message.target_id)
            return False
        mail = self._build(message, channel.destination)
        # smtplib blocks; keep it off the event loop
        await asyncio.to_thread(self._send_sync, mail)
        logger.info("Email alert sent", target_id=message.target_id, recipient=channel.destination)
        return True


class SlackSender(ChannelSender):
    channel_type = ChannelType.SLACK

    def __init__(self, client: httpx.AsyncClient, *, timeout: float = 15.0):
        self.client = client
        self.timeout = timeout

    async def deliver(self, message: AlertMessage, channel: AlertChannel) -> bool:
        resp = await self.client.post(channel.destination, json=render_slack(message), timeout=self.timeout)
        if 200 <= resp.status_code < 300:
            logger.info("Slack alert sent", target_id=message.target_id)
            return True
        logger.error("Slack webhook returned error status", target_id=message.target_id, status_code=resp.status_code)
        return False


class WebhookSender(ChannelSender):
    channel_type = ChannelType.WEBHOOK

    def __init__(self, client: httpx.AsyncClient, *, timeout: float = 15.0):
        self.client = client
        self.timeout = timeout

    async def deliver(self, message: AlertMessage, channel: AlertChannel) -> bool:
        resp = await self.client.post(channel.destination, json=render_webhook(message), timeout=self.timeout)
        if 200 <= resp.status_code < 300:
            logger.info("Webhook alert sent", target_id=message.target_id)
            return True
        logger.error("Webhook returned error status", target_id=message.target_id, status_code=resp.status_code)
        return False


def split_telegram_message(text: str, *, max_len: int = TELEGRAM_MAX_MESSAGE_LEN) -> list[str]:
    s = (text or "").strip()
    if not s:
        return [""]

    max_len = max(1, int(max_len))
    parts: list[str] = []
    while s:
        if len(s) <= max_len:
            parts.append(s)
            break
        cut = s.rfind("\n", 0, max_len + 1)
        if cut < max_len * 0.6:
            cut = max_len
        parts.append(s[:cut].rstrip())
        s = s[cut:].lstrip()
    return parts


class TelegramSender(ChannelSender):
    """Destination is the chat id; the bot token comes from configuration."""

    channel_type = ChannelType.TELEGRAM

    def __init__(self, client: httpx.AsyncClient, bot_token: Optional[str], *, timeout: float = 15.0,
                 dashboard_url: Optional[str] = None):
        self.client = client
        self.bot_token = bot_token
        self.timeout = timeout
        self.dashboard_url = dashboard_url

    def _redact(self, text: str) -> str:
        if self.bot_token:
            return text.replace(self.bot_token, "<redacted>")
        return text

    async def deliver(self, message: AlertMessage, channel: AlertChannel) -> bool:
        if not self.bot_token:
            logger.warning("Telegram bot token not configured; telegram alert skipped", target_id=message.target_id)
            return False

        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        ok_all = True
        for part in split_telegram_message(render_text(message, dashboard_url=self.dashboard_url)):
            try:
                resp = await self.client.post(url, json={"chat_id": channel.destination, "text": part}, timeout=self.timeout)
                data = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                # The token is part of the URL and therefore of httpx error messages.
                raise RuntimeError(self._redact(f"{type(e).__name__}: {e}")) from None
            ok_all = ok_all and bool(data.get("ok"))
        if ok_all:
            logger.info("Telegram alert sent", target_id=message.target_id, chat_id=channel.destination)
        return ok_all


def default_senders(config: NotificationConfig, client: httpx.AsyncClient) -> dict[ChannelType, ChannelSender]:
    timeout = config.http_timeout_seconds
    return {
        ChannelType.EMAIL: EmailSender(config),
        ChannelType.SLACK: SlackSender(client, timeout=timeout),
        ChannelType.WEBHOOK: WebhookSender(client, timeout=timeout),
        ChannelType.TELEGRAM: TelegramSender(client, config.telegram_bot_token, timeout=timeout,
                                             dashboard_url=config.dashboard_url),
    }
