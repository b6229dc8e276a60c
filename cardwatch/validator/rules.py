"""
Rule Library

Card standards, one pure function per rule. The set is closed: a new rule
needs a RuleName member, a function, an entry in RULES and a message in
RULE_MESSAGES.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Pattern

from ..common.schemas.card import Card
from ..common.schemas.templates import render_rule_message


class RuleName(str, Enum):
    """Closed set of rule identifiers"""
    TITLE_WORD_COUNT = "titleWordCount"
    TITLE_TITLEIZE = "titleTitleize"
    DESCRIPTION_AVAILABILITY = "descriptionAvailability"
    LABELS = "labels"
    DUE_DATE = "dueDate"
    MEMBERS = "members"
    LIST_OF_NEW_CARD = "listOfNewCard"
    IN_PROGRESS_LIST_MEMBERS_REQUIRED = "inProgressListMembersRequired"
    CHECKLIST_ITEM_STATE_COMPLETION = "checkListItemStateCompletion"
    CHECK_PULL_REQUEST_ATTACHMENT = "checkPullRequestAttachment"


PULL_REQUEST_PATTERN = re.compile(
    r"https?://(?:www\.)?(?:"
    r"github\.com/[^/\s]+/[^/\s]+/pull/\d+"
    r"|gitlab\.[^/\s]+/\S+/merge_requests/\d+"
    r"|bitbucket\.org/[^/\s]+/[^/\s]+/pull-requests/\d+"
    r")",
    re.IGNORECASE,
)

# Not capitalized in a titleized title unless they open it
SMALL_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "nor", "of", "to", "in", "on",
    "at", "by", "for", "with", "from", "as", "vs", "via",
})


@dataclass(frozen=True)
class RuleSettings:
    """Fixed thresholds the rules check against"""
    min_title_words: int = 3
    min_labels: int = 2
    intake_list: str = "task"
    pull_request_pattern: Pattern = field(default=PULL_REQUEST_PATTERN)


@dataclass(frozen=True)
class RuleContext:
    """Event data some rules need beyond the card itself"""
    list_name: Optional[str] = None  # list the event placed the card in
    list_before: Optional[str] = None
    actor: Optional[str] = None


@dataclass
class RuleResult:
    """Outcome of a single rule; message is empty when the rule passed"""
    rule: RuleName
    passed: bool
    message: str = ""


def _result(rule: RuleName, passed: bool, **values) -> RuleResult:
    if passed:
        return RuleResult(rule=rule, passed=True)
    return RuleResult(rule=rule, passed=False, message=render_rule_message(rule.value, **values))


def title_word_count(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    passed = len(card.name.split()) >= settings.min_title_words
    return _result(RuleName.TITLE_WORD_COUNT, passed, min_words=settings.min_title_words)


def title_titleize(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    passed = True
    for index, word in enumerate(card.name.split()):
        if not word[0].isalpha():
            continue
        if index > 0 and word.lower() in SMALL_WORDS:
            continue
        if not word[0].isupper():
            passed = False
            break
    return _result(RuleName.TITLE_TITLEIZE, passed)


def description_availability(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    return _result(RuleName.DESCRIPTION_AVAILABILITY, bool(card.desc.strip()))


def labels(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    passed = len(card.labels) >= settings.min_labels
    return _result(RuleName.LABELS, passed, min_labels=settings.min_labels)


def due_date(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    return _result(RuleName.DUE_DATE, card.due is not None)


def members(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    return _result(RuleName.MEMBERS, bool(card.id_members))


def in_progress_list_members_required(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    return _result(RuleName.IN_PROGRESS_LIST_MEMBERS_REQUIRED, bool(card.id_members))


def list_of_new_card(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    origin_list = context.list_name or card.list_name or ""
    passed = origin_list.strip().lower() == settings.intake_list.strip().lower()
    return _result(RuleName.LIST_OF_NEW_CARD, passed, intake_list=settings.intake_list.title())


def checklist_item_state_completion(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    incomplete_count = len(card.incomplete_items)
    return _result(
        RuleName.CHECKLIST_ITEM_STATE_COMPLETION,
        incomplete_count == 0,
        incomplete_count=incomplete_count,
    )


def check_pull_request_attachment(card: Card, context: RuleContext, settings: RuleSettings) -> RuleResult:
    passed = any(
        settings.pull_request_pattern.search(attachment.url or "")
        for attachment in card.attachments
    )
    destination = (context.list_name or "In Review").title()
    return _result(RuleName.CHECK_PULL_REQUEST_ATTACHMENT, passed, destination_list=destination)


RuleFunc = Callable[[Card, RuleContext, RuleSettings], RuleResult]

RULES: Dict[RuleName, RuleFunc] = {
    RuleName.TITLE_WORD_COUNT: title_word_count,
    RuleName.TITLE_TITLEIZE: title_titleize,
    RuleName.DESCRIPTION_AVAILABILITY: description_availability,
    RuleName.LABELS: labels,
    RuleName.DUE_DATE: due_date,
    RuleName.MEMBERS: members,
    RuleName.LIST_OF_NEW_CARD: list_of_new_card,
    RuleName.IN_PROGRESS_LIST_MEMBERS_REQUIRED: in_progress_list_members_required,
    RuleName.CHECKLIST_ITEM_STATE_COMPLETION: checklist_item_state_completion,
    RuleName.CHECK_PULL_REQUEST_ATTACHMENT: check_pull_request_attachment,
}
