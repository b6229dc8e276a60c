"""
Server Endpoint Tests

Drives the FastAPI app with TestClient. Components are wired with
build_components and in-process fakes; the startup lifespan is not run.
"""

import base64
import hashlib
import hmac
import json
import pytest
from typing import List


class FakeFetcher:
    def __init__(self, cards):
        self.cards = {card.id: card for card in cards}
        self.webhooks: List[dict] = []
        self.reject_webhooks = False

    async def create_webhook(self, id_model, description, callback_url):
        from cardwatch.common.trello_client import WebhookError
        if self.reject_webhooks:
            raise WebhookError("Trello rejected webhook (HTTP 400)", status_code=400)
        self.webhooks.append({"idModel": id_model, "description": description, "callbackURL": callback_url})
        return {"id": "wh1", **self.webhooks[-1]}

    async def fetch_card(self, card_id, **options):
        from cardwatch.common.trello_client import CardNotFoundError
        if card_id not in self.cards:
            raise CardNotFoundError(card_id, "HTTP 404")
        return self.cards[card_id]

    async def close(self):
        pass


class FakeNotifier:
    is_configured = True

    def __init__(self):
        self.messages: List[str] = []

    async def publish(self, message: str) -> None:
        self.messages.append(message)

    async def close(self):
        pass


def sloppy_card():
    from cardwatch.common.schemas.card import Card
    return Card(id="c1", name="fix bug", list_name="Task")


def create_payload(card_id="c1"):
    return {
        "action": {
            "type": "createCard",
            "memberCreator": {"username": "alice"},
            "data": {"card": {"id": card_id}, "list": {"name": "Task"}},
        }
    }


@pytest.fixture
def wired(tmp_path):
    """Wire server globals; yields (client, store, notifier)"""
    from fastapi.testclient import TestClient
    from cardwatch.common.config import CardwatchConfig
    from cardwatch.validator import server
    from cardwatch.validator.store import JsonViolationStore

    def _wire(cfg=None, cards=(sloppy_card(),)):
        cfg = cfg or CardwatchConfig()
        store = JsonViolationStore(tmp_path / "violations.json")
        notifier = FakeNotifier()
        server.build_components(cfg, card_fetcher=FakeFetcher(cards), slack_notifier=notifier, violation_store=store)
        return TestClient(server.app), store, notifier

    yield _wire

    for name in ("config", "trello_handler", "store", "processor", "sweeper", "fetcher", "notifier"):
        setattr(server, name, None)


class TestWebhook:

    def test_head_verification(self, wired):
        client, _, _ = wired()

        assert client.head("/trello/webhook").status_code == 200

    def test_create_event_is_processed(self, wired):
        import asyncio

        client, store, notifier = wired()

        response = client.post("/trello/webhook", json=create_payload())

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        # Background task has run by the time TestClient returns
        record = asyncio.run(store.find_by_card_id("c1"))
        assert record.warning_count == 0
        assert notifier.messages[0].startswith("@alice\n")

    def test_invalid_json(self, wired):
        client, _, _ = wired()

        response = client.post("/trello/webhook", content=b"{not json")

        assert response.status_code == 400

    def test_unhandled_action_is_acknowledged(self, wired):
        client, store, notifier = wired()
        payload = {"action": {"type": "commentCard", "data": {"card": {"id": "c1"}}}}

        response = client.post("/trello/webhook", json=payload)

        assert response.status_code == 200
        assert notifier.messages == []

    def test_signature_required_when_secret_set(self, wired):
        from cardwatch.common.config import CardwatchConfig

        cfg = CardwatchConfig()
        cfg.trello.api_secret = "secret"
        cfg.trello.callback_url = "https://cw.example.com/trello/webhook"
        client, _, _ = wired(cfg)
        body = json.dumps(create_payload()).encode()

        rejected = client.post("/trello/webhook", content=body, headers={"X-Trello-Webhook": "bogus"})

        digest = hmac.new(b"secret", body + cfg.trello.callback_url.encode(), hashlib.sha1).digest()
        accepted = client.post(
            "/trello/webhook",
            content=body,
            headers={"X-Trello-Webhook": base64.b64encode(digest).decode()},
        )

        assert rejected.status_code == 401
        assert accepted.status_code == 200

    def test_uninitialized_returns_503(self):
        from fastapi.testclient import TestClient
        from cardwatch.validator import server

        server.processor = None
        server.trello_handler = None

        response = TestClient(server.app).post("/trello/webhook", json=create_payload())

        assert response.status_code == 503


class TestSweepAndViolations:

    def test_sweep_escalates_tracked_card(self, wired):
        import asyncio
        from cardwatch.common.schemas.violation import ViolationRecord

        client, store, notifier = wired()
        asyncio.run(store.create(ViolationRecord(card_id="c1", warning_count=1)))

        response = client.post("/sweep")

        assert response.status_code == 200
        body = response.json()
        assert body["checked"] == 1
        assert body["escalated"] == 1
        assert body["skipped"] is False
        assert "Warning number - 2" in notifier.messages[0]

    def test_list_violations(self, wired):
        import asyncio
        from cardwatch.common.schemas.violation import ViolationRecord

        client, store, _ = wired()
        asyncio.run(store.create(ViolationRecord(card_id="c1", warning_count=3)))

        body = client.get("/violations").json()

        assert body["count"] == 1
        assert body["items"][0]["card_id"] == "c1"
        assert body["items"][0]["warning_count"] == 3

    def test_health(self, wired):
        client, _, _ = wired()

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["initialized"] is True
        assert body["slack_configured"] is True

    def test_health_reports_tracked_count(self, wired):
        import asyncio
        from cardwatch.common.schemas.violation import ViolationRecord

        client, store, _ = wired()
        asyncio.run(store.create(ViolationRecord(card_id="c1")))

        assert client.get("/health").json()["tracked_violations"] == 1

    def test_stats(self, wired):
        import asyncio
        from cardwatch.common.schemas.violation import ViolationRecord

        client, store, _ = wired()
        asyncio.run(store.create(ViolationRecord(card_id="c1", warning_count=4)))
        asyncio.run(store.create(ViolationRecord(card_id="c2", warning_count=1)))

        body = client.get("/stats").json()

        assert body["service"] == "cardwatch"
        assert body["store"] == {"tracked": 2, "max_warning_count": 4}
        assert body["sweep"] == {"running": False}


class TestSubscribe:

    CALLBACK = "https://cw.example.com/trello/webhook"

    def test_missing_fields_return_400(self, wired):
        client, _, _ = wired()

        response = client.post("/trello/subscribe", json={"callback_url": self.CALLBACK})

        assert response.status_code == 400
        assert response.json()["detail"] == [
            "Webhook description is required.",
            "Trello model id is required.",
        ]

    def test_missing_id_model_only(self, wired):
        client, _, _ = wired()

        response = client.post(
            "/trello/subscribe",
            json={"description": "board hook", "id_model": "  ", "callback_url": self.CALLBACK},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == ["Trello model id is required."]

    def test_callback_url_defaults_to_config(self, wired):
        from cardwatch.common.config import CardwatchConfig
        from cardwatch.validator import server

        cfg = CardwatchConfig()
        cfg.trello.callback_url = self.CALLBACK
        client, _, _ = wired(cfg)

        response = client.post("/trello/subscribe", json={"id_model": "board-1", "description": "board hook"})

        assert response.status_code == 200
        assert response.json()["webhook"]["id"] == "wh1"
        assert server.fetcher.webhooks == [
            {"idModel": "board-1", "description": "board hook", "callbackURL": self.CALLBACK}
        ]

    def test_no_callback_url_anywhere(self, wired):
        client, _, _ = wired()

        response = client.post("/trello/subscribe", json={"id_model": "board-1", "description": "board hook"})

        assert response.status_code == 400
        assert "callback URL" in response.json()["detail"][0]

    def test_trello_rejection_returns_502(self, wired):
        from cardwatch.validator import server

        client, _, _ = wired()
        server.fetcher.reject_webhooks = True

        response = client.post(
            "/trello/subscribe",
            json={"id_model": "board-1", "description": "board hook", "callback_url": self.CALLBACK},
        )

        assert response.status_code == 502
