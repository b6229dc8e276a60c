"""
Violation Tracker

Per-card state machine over the violation store.

States:
- NoRecord: card is valid, or was never found invalid
- TrackedInvalid(warning_count): card failed validation and is being chased

Transitions (verdict, state, origin):
- valid,   TrackedInvalid, any    -> delete record, NoRecord, no notification
- valid,   NoRecord,       any    -> no-op
- invalid, NoRecord,       event  -> create (warning_count=0), first-offense notification
- invalid, NoRecord,       sweep  -> inconsistent (sweep iterates stored records);
                                     create and notify as a fallback
- invalid, TrackedInvalid, event  -> re-notify, warning_count unchanged
- invalid, TrackedInvalid, sweep  -> increment warning_count, escalation notification
- archive                         -> discard(): delete unconditionally, no notification

The read-decide-write step runs under a per-card asyncio.Lock. Notifications
are sent after the state change is persisted and never roll it back.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union

from ..common.schemas.card import Card
from ..common.schemas.templates import build_notification
from ..common.schemas.violation import ViolationRecord
from ..common.slack_client import NotificationError
from .executor import Verdict
from .store import DuplicateRecordError, StoreError, ViolationStore

logger = logging.getLogger("cardwatch.validator.tracker")


class Origin(str, Enum):
    """What triggered the tracker decision"""
    EVENT = "event"
    SWEEP = "sweep"


@dataclass(frozen=True)
class NoRecord:
    pass


@dataclass(frozen=True)
class TrackedInvalid:
    warning_count: int


TrackerState = Union[NoRecord, TrackedInvalid]


class TrackerAction(str, Enum):
    CREATED = "created"
    RENOTIFIED = "renotified"
    ESCALATED = "escalated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class TrackerOutcome:
    """Result of one tracker decision"""
    card_id: str
    action: TrackerAction
    state: Optional[TrackerState] = None  # None when the store could not be read
    notified: bool = False
    message: Optional[str] = None


@dataclass
class _CardLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


def _state_of(record: Optional[ViolationRecord]) -> TrackerState:
    if record is None:
        return NoRecord()
    return TrackedInvalid(warning_count=record.warning_count)


class ViolationTracker:
    """
    Decides store mutations and notifications from a verdict.

    Args:
        store: Violation store
        notifier: Object with `async publish(message)`
        renotify_on_update: Re-notify when an event re-fails an already
            tracked card (the record is left untouched either way)
    """

    def __init__(self, store: ViolationStore, notifier, renotify_on_update: bool = True):
        self._store = store
        self._notifier = notifier
        self._renotify_on_update = renotify_on_update
        self._locks: Dict[str, _CardLock] = {}

    @asynccontextmanager
    async def _card_lock(self, card_id: str):
        """Per-card critical section; the entry is dropped once nobody holds or awaits it"""
        entry = self._locks.get(card_id)
        if entry is None:
            entry = self._locks[card_id] = _CardLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[card_id]

    async def current_state(self, card_id: str) -> TrackerState:
        """Resolve a card's state from the store (raises StoreError)"""
        return _state_of(await self._store.find_by_card_id(card_id))

    async def handle(
        self,
        card: Card,
        verdict: Verdict,
        origin: Origin,
        actor: Optional[str] = None,
    ) -> TrackerOutcome:
        """
        Apply a verdict to the card's tracked state.

        Args:
            card: Card snapshot the verdict was computed for
            verdict: Executor verdict
            origin: EVENT for live webhooks, SWEEP for periodic re-checks
            actor: Trello username to mention in first-offense messages

        Returns:
            TrackerOutcome describing what changed and whether a notification went out
        """
        async with self._card_lock(card.id):
            try:
                outcome = await self._transition(card, verdict, origin, actor)
            except StoreError as e:
                logger.error("Store failure for card %s (%s path): %s", card.id, origin.value, e)
                return TrackerOutcome(card_id=card.id, action=TrackerAction.FAILED)

        if outcome.message is not None:
            outcome.notified = await self._notify(card.id, outcome.message)
        return outcome

    async def _transition(
        self,
        card: Card,
        verdict: Verdict,
        origin: Origin,
        actor: Optional[str],
    ) -> TrackerOutcome:
        state = await self.current_state(card.id)

        if verdict.valid:
            if isinstance(state, TrackedInvalid):
                await self._store.delete(card.id)
                logger.info("Card %s is valid again, record deleted", card.id)
                return TrackerOutcome(card_id=card.id, action=TrackerAction.DELETED, state=NoRecord())
            return TrackerOutcome(card_id=card.id, action=TrackerAction.UNCHANGED, state=state)

        if isinstance(state, NoRecord):
            if origin == Origin.SWEEP:
                logger.warning("Sweep found card %s without a record; recreating it", card.id)
            for _ in range(2):
                try:
                    record = await self._store.create(ViolationRecord(card_id=card.id, warning_count=0))
                    break
                except DuplicateRecordError:
                    # Lost a create race with another writer; the card is already tracked
                    existing = await self._store.find_by_card_id(card.id)
                    if existing is not None:
                        return self._already_tracked(card, verdict, _state_of(existing), actor)
                    # Deleted again before the re-read: try the create once more
            else:
                logger.error("Could not create a record for card %s: store keeps reporting a duplicate", card.id)
                return TrackerOutcome(card_id=card.id, action=TrackerAction.FAILED, state=NoRecord())

            message = build_notification(Origin.EVENT.value, card, verdict.failures, actor=actor)
            return TrackerOutcome(
                card_id=card.id,
                action=TrackerAction.CREATED,
                state=_state_of(record),
                message=message,
            )

        if origin == Origin.EVENT:
            return self._already_tracked(card, verdict, state, actor)

        record = await self._store.increment_warning(card.id)
        logger.info("Card %s still invalid, warning number %d", card.id, record.warning_count)
        message = build_notification(
            Origin.SWEEP.value, card, verdict.failures, warning_count=record.warning_count
        )
        return TrackerOutcome(
            card_id=card.id,
            action=TrackerAction.ESCALATED,
            state=_state_of(record),
            message=message,
        )

    def _already_tracked(
        self,
        card: Card,
        verdict: Verdict,
        state: TrackerState,
        actor: Optional[str],
    ) -> TrackerOutcome:
        message = None
        if self._renotify_on_update:
            message = build_notification(Origin.EVENT.value, card, verdict.failures, actor=actor)
        return TrackerOutcome(
            card_id=card.id,
            action=TrackerAction.RENOTIFIED if message else TrackerAction.UNCHANGED,
            state=state,
            message=message,
        )

    async def discard(self, card_id: str) -> TrackerOutcome:
        """Delete any record for an archived/deleted card. No notification."""
        async with self._card_lock(card_id):
            try:
                deleted = await self._store.delete(card_id)
            except StoreError as e:
                logger.error("Store failure deleting record for card %s: %s", card_id, e)
                return TrackerOutcome(card_id=card_id, action=TrackerAction.FAILED)

        if deleted:
            logger.info("Card %s archived, record deleted", card_id)
        return TrackerOutcome(
            card_id=card_id,
            action=TrackerAction.DELETED if deleted else TrackerAction.UNCHANGED,
            state=NoRecord(),
        )

    async def _notify(self, card_id: str, message: str) -> bool:
        try:
            await self._notifier.publish(message)
            return True
        except NotificationError as e:
            logger.warning("Notification for card %s failed: %s", card_id, e)
            return False
