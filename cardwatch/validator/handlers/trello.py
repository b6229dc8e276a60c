"""
Trello Handler

Handles Trello webhook payloads and converts them to card events.
"""

import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from ..events import CardArchived, CardCreated, CardEvent, CardMoved, UnhandledEvent
from .base import BaseHandler

logger = logging.getLogger("cardwatch.validator.handlers.trello")

MOVE_BETWEEN_LISTS = "action_move_card_from_list_to_list"
ARCHIVED_CARD = "action_archived_card"


class TrelloHandler(BaseHandler):
    """
    Handler for Trello model webhooks.

    Processes:
    - createCard
    - updateCard moved between lists
    - updateCard archived, deleteCard

    Everything else about a card becomes UnhandledEvent; actions without a
    card (board renames, list creation, ...) are ignored.
    """

    def __init__(self, api_secret: str = "", callback_url: str = ""):
        """
        Initialize Trello handler.

        Args:
            api_secret: Trello application secret used to sign webhooks
            callback_url: Callback URL registered with the webhook
        """
        super().__init__("trello")
        self._api_secret = api_secret
        self._callback_url = callback_url

    def parse_action(self, raw_data: Dict[str, Any]) -> Optional[CardEvent]:
        action = raw_data.get("action") or {}
        data = action.get("data") or {}
        card = data.get("card") or {}
        card_id = card.get("id")

        if not card_id:
            logger.debug("Ignoring %s action without a card", action.get("type"))
            return None

        action_type = action.get("type", "")
        translation_key = (action.get("display") or {}).get("translationKey")
        actor = (action.get("memberCreator") or {}).get("username")

        if action_type == "createCard":
            return CardCreated(
                card_id=card_id,
                actor=actor,
                list_name=(data.get("list") or {}).get("name"),
            )

        if action_type == "deleteCard":
            return CardArchived(card_id=card_id, actor=actor, deleted=True)

        if action_type == "updateCard":
            if translation_key == MOVE_BETWEEN_LISTS:
                return CardMoved(
                    card_id=card_id,
                    list_before=(data.get("listBefore") or {}).get("name", ""),
                    list_after=(data.get("listAfter") or {}).get("name", ""),
                    actor=actor,
                )
            if translation_key == ARCHIVED_CARD or card.get("closed") is True:
                return CardArchived(card_id=card_id, actor=actor)

        return UnhandledEvent(
            card_id=card_id,
            action_type=action_type,
            translation_key=translation_key,
            actor=actor,
        )

    def verify_signature(self, body: bytes, signature: str) -> bool:
        """
        Verify X-Trello-Webhook signature.

        Trello signs base64(HMAC-SHA1(app_secret, body + callback_url)).
        """
        if not self._api_secret:
            # Skip verification if no secret configured
            return True

        if not signature:
            return False

        content = body + self._callback_url.encode("utf-8")
        expected = base64.b64encode(
            hmac.new(self._api_secret.encode("utf-8"), content, hashlib.sha1).digest()
        ).decode("ascii")

        return hmac.compare_digest(expected, signature)
