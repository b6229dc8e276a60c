"""
Base Handler

Abstract base class for webhook event sources.
Provides a common interface for converting payloads to card events.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..events import CardEvent, UnhandledEvent


class BaseHandler(ABC):
    """
    Abstract base class for source handlers.

    Each handler must implement:
    - parse_action: Convert a raw webhook payload to a CardEvent
    - verify_signature: Verify webhook signature (if applicable)
    """

    def __init__(self, source_name: str):
        """
        Initialize handler.

        Args:
            source_name: Name of the source (e.g., "trello")
        """
        self.source_name = source_name

    @abstractmethod
    def parse_action(self, raw_data: Dict[str, Any]) -> Optional[CardEvent]:
        """
        Parse webhook payload into a CardEvent.

        Args:
            raw_data: Decoded webhook body

        Returns:
            CardEvent, or None if the payload is not about a card
        """
        pass

    @abstractmethod
    def verify_signature(self, body: bytes, signature: str) -> bool:
        """
        Verify the webhook signature.

        Args:
            body: Raw request body
            signature: Signature from headers

        Returns:
            True if signature is valid
        """
        pass

    def should_process(self, event: Optional[CardEvent]) -> bool:
        """
        Check if event should be handed to the processor.

        Unhandled card actions are dropped here; they would select no rules.
        Override in subclass for source-specific filtering.
        """
        if event is None:
            return False
        return not isinstance(event, UnhandledEvent)
