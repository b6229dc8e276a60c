"""
Sweep Processor

Periodic re-check of every tracked card. Cards fixed since the last pass
are resolved; cards still failing get an escalation notification with an
incremented warning number.

Triggered externally (POST /sweep or the cardwatch-sweep command); passes
never overlap.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..common.schemas.violation import ViolationRecord
from ..common.trello_client import FetchError
from .executor import RuleExecutor
from .selector import select_sweep_rules
from .store import StoreError, ViolationStore
from .tracker import Origin, TrackerAction, ViolationTracker

logger = logging.getLogger("cardwatch.validator.sweep")


@dataclass
class SweepReport:
    """Summary of one sweep pass"""
    checked: int = 0
    escalated: int = 0
    resolved: int = 0
    failed: int = 0
    skipped: bool = False
    failed_cards: List[str] = field(default_factory=list)


class SweepProcessor:
    """
    Re-runs executor and tracker over all tracked invalid cards.

    Cards are processed independently with bounded concurrency; a failure
    on one card is logged and counted, and the pass continues.
    """

    def __init__(
        self,
        store: ViolationStore,
        fetcher,
        tracker: ViolationTracker,
        executor: Optional[RuleExecutor] = None,
        concurrency: int = 5,
    ):
        self._store = store
        self._fetcher = fetcher
        self._tracker = tracker
        self._executor = executor or RuleExecutor()
        self._concurrency = max(1, concurrency)
        self._pass_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._pass_lock.locked()

    async def run(self) -> SweepReport:
        """
        Run one sweep pass.

        Returns:
            SweepReport; skipped=True if another pass was already running
        """
        if self._pass_lock.locked():
            logger.info("Sweep already running, skipping")
            return SweepReport(skipped=True)

        async with self._pass_lock:
            report = SweepReport()
            try:
                records = await self._store.list_all_invalid()
            except StoreError as e:
                logger.error("Sweep could not list tracked cards: %s", e)
                report.failed = 1
                return report

            semaphore = asyncio.Semaphore(self._concurrency)

            async def _bounded(record: ViolationRecord) -> Optional[TrackerAction]:
                async with semaphore:
                    return await self._check(record)

            actions = await asyncio.gather(*(_bounded(record) for record in records))

            for record, action in zip(records, actions):
                report.checked += 1
                if action == TrackerAction.ESCALATED:
                    report.escalated += 1
                elif action == TrackerAction.DELETED:
                    report.resolved += 1
                elif action in (None, TrackerAction.FAILED):
                    report.failed += 1
                    report.failed_cards.append(record.card_id)

            logger.info(
                "Sweep done: %d checked, %d escalated, %d resolved, %d failed",
                report.checked, report.escalated, report.resolved, report.failed,
            )
            return report

    async def _check(self, record: ViolationRecord) -> Optional[TrackerAction]:
        try:
            card = await self._fetcher.fetch_card(record.card_id)
        except FetchError as e:
            logger.warning("Sweep could not fetch card %s: %s", record.card_id, e)
            return None

        try:
            verdict = self._executor.execute(card, select_sweep_rules())
            outcome = await self._tracker.handle(card, verdict, Origin.SWEEP)
        except Exception:
            logger.exception("Sweep failed for card %s", record.card_id)
            return None
        return outcome.action
