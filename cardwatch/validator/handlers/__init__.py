"""
Source Handlers

Each handler converts source-specific webhook payloads to card events.

Available Handlers:
- TrelloHandler: Trello model webhooks
"""

from .base import BaseHandler
from .trello import TrelloHandler

__all__ = [
    "BaseHandler",
    "TrelloHandler",
]
