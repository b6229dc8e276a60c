"""
Event Processor

Runs one webhook event through the validation pipeline:
archive check -> fetch card -> classify -> select rules -> execute -> track.

Nothing raised here reaches the webhook response; fetch failures are
logged and the event is dropped.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..common.trello_client import FetchError
from .classifier import DEFAULT_NON_DEV_MARKER, classify
from .events import CardArchived, CardCreated, CardEvent, CardMoved
from .executor import RuleExecutor
from .rules import RuleContext
from .selector import ListNames, SelectionAction, select_rules
from .tracker import Origin, TrackerOutcome, ViolationTracker

logger = logging.getLogger("cardwatch.validator.processor")

# Options passed to the card fetcher so every rule has what it reads
FETCH_OPTIONS = {"attachments": True, "checklists": "all", "list": True}


@dataclass(frozen=True)
class ProcessorSettings:
    non_dev_marker: str = DEFAULT_NON_DEV_MARKER
    lists: ListNames = ListNames()


def _context_for(event: CardEvent) -> RuleContext:
    if isinstance(event, CardCreated):
        return RuleContext(list_name=event.list_name, actor=event.actor)
    if isinstance(event, CardMoved):
        return RuleContext(list_name=event.list_after, list_before=event.list_before, actor=event.actor)
    return RuleContext(actor=event.actor)


class EventProcessor:
    """
    Orchestrates classifier, selector, executor and tracker for live events.

    Args:
        fetcher: Object with `async fetch_card(card_id, **options) -> Card`
        tracker: ViolationTracker
        executor: RuleExecutor
        settings: Classifier marker and board list names
    """

    def __init__(
        self,
        fetcher,
        tracker: ViolationTracker,
        executor: Optional[RuleExecutor] = None,
        settings: Optional[ProcessorSettings] = None,
    ):
        self._fetcher = fetcher
        self._tracker = tracker
        self._executor = executor or RuleExecutor()
        self._settings = settings or ProcessorSettings()

    async def process(self, event: CardEvent) -> Optional[TrackerOutcome]:
        """
        Process one event.

        Returns:
            TrackerOutcome, or None when the event was dropped or needed no validation
        """
        # Archived/deleted cards may not be fetchable any more
        if isinstance(event, CardArchived):
            return await self._tracker.discard(event.card_id)

        try:
            card = await self._fetcher.fetch_card(event.card_id, **FETCH_OPTIONS)
        except FetchError as e:
            logger.warning("Dropping %s for card %s: %s", type(event).__name__, event.card_id, e)
            return None

        category = classify(card, self._settings.non_dev_marker)
        selection = select_rules(event, category, len(card.checklists), self._settings.lists)

        if selection.action == SelectionAction.DELETE_RECORD:
            return await self._tracker.discard(card.id)
        if selection.action == SelectionAction.SKIP:
            logger.debug("No rules apply to %s for card %s", type(event).__name__, card.id)
            return None

        verdict = self._executor.execute(card, selection.rules, _context_for(event))
        return await self._tracker.handle(card, verdict, Origin.EVENT, actor=event.actor)
