"""
Cardwatch Common Module

Shared infrastructure: configuration, schemas, Trello and Slack clients.
"""

from .config import CardwatchConfig, load_config
from .trello_client import (
    TrelloClient,
    FetchError,
    CardNotFoundError,
    TransientFetchError,
    WebhookError,
)
from .slack_client import SlackNotifier, NotificationError

__all__ = [
    "CardwatchConfig",
    "load_config",
    "TrelloClient",
    "FetchError",
    "CardNotFoundError",
    "TransientFetchError",
    "WebhookError",
    "SlackNotifier",
    "NotificationError",
]
