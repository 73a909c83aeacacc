"""Notification sinks for divergence alerts.

The only contract is: deliver one text message, report whether it went out,
and never hold up the pipeline for longer than the request timeout. There
is no retry; the artifacts on disk are the durable record.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

import requests
from loguru import logger

from block_qa_tracker.config.tracker import NotifyConfig
from block_qa_tracker.errors import NotificationError


class NotificationSink(Protocol):
    """Fire-and-forget delivery channel for alert text."""

    def send(self, text: str) -> bool:
        """Deliver text.

        Returns:
            True if delivered, False if the sink is disabled

        Raises:
            NotificationError: If delivery was attempted and failed
        """
        ...


def build_alert_message(
    sequence: int,
    fingerprint_a: str,
    fingerprint_b: str,
    path_a: Path | str,
    path_b: Path | str,
    timestamp: datetime,
    discrepancy_count: int | None = None,
) -> str:
    """Format the divergence alert text."""
    lines = [
        "🚨 *Solana Block QA Alert* 🚨",
        f"Block differences detected at slot {sequence}",
        f"• Firehose checksum: `{fingerprint_a}`",
        f"• RPC Fetcher checksum: `{fingerprint_b}`",
        f"• Firehose JSON file: `{path_a}`",
        f"• RPC Fetcher JSON file: `{path_b}`",
    ]
    if discrepancy_count is not None:
        lines.append(f"• Differing fields: {discrepancy_count}")
    lines.append(f"• Time: {timestamp.isoformat(timespec='seconds')}")
    return "\n".join(lines)


class WebhookNotifier:
    """Slack-compatible incoming-webhook sink.

    An empty webhook URL disables delivery: send() logs and returns False.
    """

    def __init__(
        self,
        webhook_url: str,
        channel: str = "solana",
        username: str = "Solana Block QA Tracker",
        icon_emoji: str = ":warning:",
        timeout_seconds: float = 10.0,
        session: Any | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.channel = channel or "#general"
        self.username = username
        self.icon_emoji = icon_emoji
        self.timeout_seconds = timeout_seconds
        self._session = session if session is not None else requests.Session()

    @classmethod
    def from_config(cls, config: NotifyConfig) -> WebhookNotifier:
        return cls(
            config.webhook_url,
            channel=config.channel,
            username=config.username,
            icon_emoji=config.icon_emoji,
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def payload(self, text: str) -> dict[str, str]:
        return {
            "channel": self.channel,
            "username": self.username,
            "icon_emoji": self.icon_emoji,
            "text": text,
        }

    def send(self, text: str) -> bool:
        if not self.enabled:
            logger.info("Webhook URL not set, skipping notification")
            return False
        try:
            resp = self._session.post(
                self.webhook_url, json=self.payload(text), timeout=self.timeout_seconds
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise NotificationError(self.channel, e) from e
        logger.info(f"Notification sent to channel {self.channel}")
        return True

    def close(self) -> None:
        self._session.close()
