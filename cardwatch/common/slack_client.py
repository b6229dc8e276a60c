"""
Slack Notifier

Publishes violation notifications to a Slack incoming webhook.
Fire-and-forget from the tracker's point of view: failures raise
NotificationError and the caller logs them.
"""

import logging
from typing import Optional

import httpx

from .config import SlackConfig

logger = logging.getLogger("cardwatch.common.slack_client")


class NotificationError(Exception):
    """Notification could not be delivered."""
    pass


class SlackNotifier:
    """
    Posts plain-text messages to a Slack incoming webhook.

    With no webhook URL configured the message is only logged, which keeps
    local runs quiet.
    """

    def __init__(
        self,
        webhook_url: str = "",
        channel: str = "",
        username: str = "cardwatch",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._webhook_url = webhook_url
        self._channel = channel
        self._username = username
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    @property
    def is_configured(self) -> bool:
        return bool(self._webhook_url)

    async def publish(self, message: str) -> None:
        """
        Publish a message.

        Raises:
            NotificationError: Slack rejected the message or was unreachable
        """
        if not self.is_configured:
            logger.info("Slack webhook not configured, message not sent:\n%s", message)
            return

        body = {"text": message, "username": self._username}
        if self._channel:
            body["channel"] = self._channel

        try:
            response = await self._client.post(self._webhook_url, json=body)
        except httpx.HTTPError as e:
            raise NotificationError(f"Slack webhook request failed: {e}") from e

        if response.status_code != 200:
            raise NotificationError(
                f"Slack webhook returned HTTP {response.status_code}: {response.text[:200]}"
            )

    async def close(self) -> None:
        await self._client.aclose()


def create_slack_notifier(config: SlackConfig) -> SlackNotifier:
    """Factory function to create a notifier from config"""
    if not config.webhook_url:
        logger.info("Slack not configured (SLACK_WEBHOOK_URL missing), notifications will be logged only")
    return SlackNotifier(
        webhook_url=config.webhook_url,
        channel=config.channel,
        username=config.username,
    )
