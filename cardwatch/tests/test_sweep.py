"""
Sweep Processor Tests

Escalation, resolution, per-card failure tolerance, non-overlapping passes
and bounded concurrency.
"""

import asyncio
import pytest
from typing import Dict, List


class FakeFetcher:
    def __init__(self, cards=None, failing=()):
        self.cards: Dict[str, object] = {card.id: card for card in (cards or [])}
        self.failing = set(failing)
        self.in_flight = 0
        self.peak = 0
        self.delay = 0.0

    async def fetch_card(self, card_id, **options):
        from cardwatch.common.trello_client import CardNotFoundError, TransientFetchError
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if card_id in self.failing:
                raise TransientFetchError(card_id, "HTTP 502")
            if card_id not in self.cards:
                raise CardNotFoundError(card_id, "HTTP 404")
            return self.cards[card_id]
        finally:
            self.in_flight -= 1


class FakeNotifier:
    def __init__(self):
        self.messages: List[str] = []

    async def publish(self, message: str) -> None:
        self.messages.append(message)


def bad_card(card_id):
    from cardwatch.common.schemas.card import Card
    return Card(id=card_id, name="fix bug")


def fixed_card(card_id):
    from cardwatch.common.schemas.card import Card, Label
    return Card(id=card_id, name="Fix Login Bug", desc="Done properly",
                labels=[Label(name="High"), Label(name="Bug")])


@pytest.fixture
def store(tmp_path):
    from cardwatch.validator.store import JsonViolationStore
    return JsonViolationStore(tmp_path / "violations.json")


def make_sweeper(store, fetcher, notifier, concurrency=5):
    from cardwatch.validator.sweep import SweepProcessor
    from cardwatch.validator.tracker import ViolationTracker
    return SweepProcessor(store, fetcher, ViolationTracker(store, notifier), concurrency=concurrency)


class TestSweepPass:

    @pytest.mark.asyncio
    async def test_still_invalid_card_escalates(self, store):
        from cardwatch.common.schemas.violation import ViolationRecord

        await store.create(ViolationRecord(card_id="c1", warning_count=2))
        notifier = FakeNotifier()
        sweeper = make_sweeper(store, FakeFetcher([bad_card("c1")]), notifier)

        report = await sweeper.run()

        assert (report.checked, report.escalated, report.resolved, report.failed) == (1, 1, 0, 0)
        assert (await store.find_by_card_id("c1")).warning_count == 3
        assert "Warning number - 3" in notifier.messages[0]

    @pytest.mark.asyncio
    async def test_fixed_card_is_resolved_silently(self, store):
        from cardwatch.common.schemas.violation import ViolationRecord

        await store.create(ViolationRecord(card_id="c1", warning_count=4))
        notifier = FakeNotifier()
        sweeper = make_sweeper(store, FakeFetcher([fixed_card("c1")]), notifier)

        report = await sweeper.run()

        assert report.resolved == 1
        assert await store.find_by_card_id("c1") is None
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_empty_store(self, store):
        report = await make_sweeper(store, FakeFetcher(), FakeNotifier()).run()

        assert report.checked == 0
        assert report.skipped is False


class TestSweepFailures:

    @pytest.mark.asyncio
    async def test_fetch_failure_is_isolated(self, store):
        from cardwatch.common.schemas.violation import ViolationRecord

        for card_id in ("c1", "c2", "c3"):
            await store.create(ViolationRecord(card_id=card_id, warning_count=1))
        fetcher = FakeFetcher([bad_card("c1"), fixed_card("c3")], failing={"c2"})
        sweeper = make_sweeper(store, fetcher, FakeNotifier())

        report = await sweeper.run()

        assert report.checked == 3
        assert report.escalated == 1
        assert report.resolved == 1
        assert report.failed == 1
        assert report.failed_cards == ["c2"]
        # Failed card keeps its count
        assert (await store.find_by_card_id("c2")).warning_count == 1

    @pytest.mark.asyncio
    async def test_listing_failure_reports_failed_pass(self, store):
        from unittest.mock import AsyncMock
        from cardwatch.validator.store import StoreError

        store.list_all_invalid = AsyncMock(side_effect=StoreError("unreadable"))

        report = await make_sweeper(store, FakeFetcher(), FakeNotifier()).run()

        assert report.checked == 0
        assert report.failed == 1


class TestSweepConcurrency:

    @pytest.mark.asyncio
    async def test_overlapping_pass_is_skipped(self, store):
        from cardwatch.common.schemas.violation import ViolationRecord

        await store.create(ViolationRecord(card_id="c1", warning_count=1))
        fetcher = FakeFetcher([bad_card("c1")])
        fetcher.delay = 0.05
        sweeper = make_sweeper(store, fetcher, FakeNotifier())

        first, second = await asyncio.gather(sweeper.run(), sweeper.run())

        assert first.skipped is False
        assert second.skipped is True
        assert (await store.find_by_card_id("c1")).warning_count == 2
        assert sweeper.is_running is False

    @pytest.mark.asyncio
    async def test_fetches_are_bounded(self, store):
        from cardwatch.common.schemas.violation import ViolationRecord

        cards = [bad_card(f"c{i}") for i in range(8)]
        for card in cards:
            await store.create(ViolationRecord(card_id=card.id))
        fetcher = FakeFetcher(cards)
        fetcher.delay = 0.01
        sweeper = make_sweeper(store, fetcher, FakeNotifier(), concurrency=3)

        report = await sweeper.run()

        assert report.escalated == 8
        assert 1 <= fetcher.peak <= 3
