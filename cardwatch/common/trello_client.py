"""
Trello Client

Fetches card snapshots from the Trello REST API.

Also registers webhooks (POST /webhooks) for the server's subscribe endpoint.

Errors:
- CardNotFoundError: card deleted, or not visible to the token
- TransientFetchError: rate limits, 5xx, timeouts, connection failures
- WebhookError: webhook registration refused or failed
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config import TrelloConfig
from .schemas.card import Card

logger = logging.getLogger("cardwatch.common.trello_client")

# Fields the rules read; everything else is left out of the payload
CARD_FIELDS = "name,desc,labels,idMembers,due,idList,shortUrl,url"


class FetchError(Exception):
    """Card could not be fetched."""

    def __init__(self, card_id: str, message: str):
        super().__init__(f"{card_id}: {message}")
        self.card_id = card_id


class CardNotFoundError(FetchError):
    """Card does not exist (or is not visible to the configured token)."""
    pass


class TransientFetchError(FetchError):
    """Fetch failed for a reason that may go away on retry."""
    pass


class WebhookError(Exception):
    """Trello refused or could not register a webhook."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TrelloClient:
    """
    Async client for the Trello cards endpoint.

    Usage:
        client = TrelloClient(api_key="...", token="...")
        card = await client.fetch_card("5f1c...", attachments=True, checklists="all")
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        token: str,
        base_url: str = "https://api.trello.com/1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Trello client.

        Args:
            api_key: Trello API key
            token: Trello member token
            base_url: API root
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._auth = {"key": api_key, "token": token}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def fetch_card(self, card_id: str, **options: Any) -> Card:
        """
        Fetch a card snapshot.

        Args:
            card_id: Trello card id
            **options: Extra query options, e.g. attachments=True, checklists="all"

        Returns:
            Card snapshot

        Raises:
            CardNotFoundError: 400/404 from Trello
            TransientFetchError: 429, 5xx, or transport failure
        """
        params: Dict[str, Any] = {
            "fields": CARD_FIELDS,
            "labels": "all",
            "list": "true",
            "attachments": "true",
            "checklists": "all",
        }
        for key, value in options.items():
            params[key] = str(value).lower() if isinstance(value, bool) else value
        params.update(self._auth)

        try:
            response = await self._client.get(f"/cards/{card_id}", params=params)
        except httpx.HTTPError as e:
            raise TransientFetchError(card_id, f"request failed: {e}") from e

        if response.status_code in (400, 404):
            raise CardNotFoundError(card_id, f"card not found (HTTP {response.status_code})")
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientFetchError(card_id, f"Trello unavailable (HTTP {response.status_code})")
        if response.status_code != 200:
            raise TransientFetchError(card_id, f"unexpected response (HTTP {response.status_code})")

        try:
            return Card.from_trello(response.json())
        except (ValueError, KeyError) as e:
            raise TransientFetchError(card_id, f"malformed card payload: {e}") from e

    async def create_webhook(self, id_model: str, description: str, callback_url: str) -> Dict[str, Any]:
        """
        Register a webhook so Trello posts actions on a model (usually a board).

        Args:
            id_model: Trello id of the board, list or card to watch
            description: Label shown in Trello's webhook list
            callback_url: Public URL of POST /trello/webhook

        Returns:
            Webhook object from Trello (id, idModel, callbackURL, active, ...)

        Raises:
            WebhookError: Trello rejected the request or was unreachable
        """
        params = {
            "idModel": id_model,
            "description": description,
            "callbackURL": callback_url,
        }
        params.update(self._auth)

        try:
            response = await self._client.post("/webhooks", params=params)
        except httpx.HTTPError as e:
            raise WebhookError(f"webhook request failed: {e}") from e

        if response.status_code != 200:
            # Trello answers 400 when the HEAD check on the callback URL fails
            raise WebhookError(
                f"Trello rejected webhook (HTTP {response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.info("Registered Trello webhook for model %s -> %s", id_model, callback_url)
        return response.json()

    async def close(self) -> None:
        await self._client.aclose()


def create_trello_client(config: TrelloConfig) -> Optional[TrelloClient]:
    """
    Factory function to create a Trello client from config.

    Returns:
        TrelloClient if credentials are configured, None otherwise
    """
    if not config.api_key or not config.token:
        logger.info("Trello not configured (TRELLO_API_KEY or TRELLO_TOKEN missing)")
        return None

    return TrelloClient(
        api_key=config.api_key,
        token=config.token,
        base_url=config.base_url,
        timeout=config.timeout,
    )
