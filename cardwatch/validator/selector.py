"""
Rule Selector

Maps an event and card category to the rules that apply. Selection order
only affects the order of messages in a notification.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from .classifier import Category
from .events import CardArchived, CardCreated, CardEvent, CardMoved, UnhandledEvent
from .rules import RuleName

CREATE_RULES = (
    RuleName.TITLE_WORD_COUNT,
    RuleName.TITLE_TITLEIZE,
    RuleName.DESCRIPTION_AVAILABILITY,
    RuleName.LABELS,
    RuleName.LIST_OF_NEW_CARD,
)

# Periodic re-check: no transition happened, so no list rules
SWEEP_RULES = (
    RuleName.TITLE_WORD_COUNT,
    RuleName.TITLE_TITLEIZE,
    RuleName.DESCRIPTION_AVAILABILITY,
    RuleName.LABELS,
)


class SelectionAction(str, Enum):
    VALIDATE = "validate"
    DELETE_RECORD = "delete_record"
    SKIP = "skip"  # nothing evaluated; not the same as valid


@dataclass
class RuleSelection:
    action: SelectionAction
    rules: List[RuleName] = field(default_factory=list)


@dataclass(frozen=True)
class ListNames:
    """Board list names the selector reacts to (compared case-insensitively)"""
    in_progress: str = "in progress"
    in_review: str = "in review"


def _same_list(a: str, b: str) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def select_rules(
    event: CardEvent,
    category: Category,
    checklist_length: int,
    lists: ListNames = ListNames(),
) -> RuleSelection:
    """
    Select the rules for an event.

    Args:
        event: Classified card event
        category: Card category from the classifier
        checklist_length: Number of checklists on the card
        lists: Board list names

    Returns:
        RuleSelection; VALIDATE always carries at least one rule
    """
    if isinstance(event, CardCreated):
        return RuleSelection(SelectionAction.VALIDATE, list(CREATE_RULES))

    if isinstance(event, CardArchived):
        return RuleSelection(SelectionAction.DELETE_RECORD)

    if isinstance(event, CardMoved):
        rules: List[RuleName] = []
        if _same_list(event.list_after, lists.in_progress):
            rules.extend([RuleName.IN_PROGRESS_LIST_MEMBERS_REQUIRED, RuleName.DUE_DATE])
        if _same_list(event.list_after, lists.in_review) and checklist_length > 0:
            rules.append(RuleName.CHECKLIST_ITEM_STATE_COMPLETION)
        if _same_list(event.list_after, lists.in_review) and category == Category.DEVELOPMENT:
            rules.append(RuleName.CHECK_PULL_REQUEST_ATTACHMENT)
        if rules:
            return RuleSelection(SelectionAction.VALIDATE, rules)
        return RuleSelection(SelectionAction.SKIP)

    if isinstance(event, UnhandledEvent):
        return RuleSelection(SelectionAction.SKIP)

    raise TypeError(f"Unknown event type: {type(event).__name__}")


def select_sweep_rules() -> List[RuleName]:
    """Rules re-checked on every sweep pass"""
    return list(SWEEP_RULES)
