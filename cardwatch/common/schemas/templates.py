"""
Message Templates

Rule failure messages and Slack notification composition.
All formatting is done by pure functions; nothing here holds state.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .card import Card
    from ...validator.rules import RuleResult


# Keyed by RuleName value
RULE_MESSAGES = {
    "titleWordCount": "Please describe the card title in a more descriptive way (at least {min_words} words).",
    "titleTitleize": "Title of the card is not titleized. Please capitalize each word of the title.",
    "descriptionAvailability": "Card doesn't have a description. Add some.",
    "labels": "Card should have at least {min_labels} labels. One for priority and other for classification.",
    "dueDate": "Card doesn't have a due date. Take responsibility and ownership of your tasks.",
    "members": "Please assign the card to someone.",
    "inProgressListMembersRequired": "Card should be assigned to someone when it is pushed to *In Progress*.",
    "listOfNewCard": "Card should be created only in the '{intake_list}' list.",
    "checkListItemStateCompletion": (
        "When the card is moved to *In Review*, all checklist items should be completed. "
        "There are {incomplete_count} items which are not completed yet."
    ),
    "checkPullRequestAttachment": "When the card moves to *{destination_list}*, it should have a pull request attached to it.",
}

RULE_ERROR_MESSAGE = "Rule '{rule}' could not be evaluated for this card. The operators have been notified."

FIRST_OFFENSE_HEADER = (
    "{mention}:white_frowning_face: Awww! Looks like this card doesn't follow the card standards.\n"
    "*{title}* {url}"
)

ESCALATION_HEADER = (
    ":sweat: Again!!!!!\n"
    "*{title}* {url}\n"
    "This card still has some unresolved standard issues. Fix it or I will not get tired of notifying you!\n"
    "Warning number - {warning_count}"
)


def render_rule_message(rule: str, **values) -> str:
    """
    Render the failure message for a rule.

    Args:
        rule: RuleName value
        **values: Template values (e.g. incomplete_count)

    Returns:
        Human-readable message
    """
    template = RULE_MESSAGES[rule]
    try:
        return template.format(**values)
    except KeyError:
        # Missing template value: show the message without substitution
        return template


def build_notification(
    origin: str,
    card: "Card",
    failures: List["RuleResult"],
    actor: Optional[str] = None,
    warning_count: Optional[int] = None,
) -> str:
    """
    Compose a Slack notification: header, then one line per failure.

    Args:
        origin: "event" for first-offense wording, "sweep" for escalation
        card: Card snapshot the failures belong to
        failures: Failing rule results, in selection order
        actor: Trello username that triggered the event (event origin)
        warning_count: Current warning number (sweep origin)

    Returns:
        Newline-joined message
    """
    title = card.name or card.id
    url = card.short_url

    if origin == "sweep":
        header = ESCALATION_HEADER.format(
            title=title,
            url=url,
            warning_count=warning_count if warning_count is not None else 0,
        )
    else:
        mention = f"@{actor}\n" if actor else ""
        header = FIRST_OFFENSE_HEADER.format(mention=mention, title=title, url=url)

    lines = [header.rstrip()]
    lines.extend(f"- {result.message}" for result in failures)
    return "\n".join(lines)


# Request validation for POST /trello/subscribe, keyed by request field
SUBSCRIBE_VALIDATION_MESSAGES = {
    "description": "Webhook description is required.",
    "id_model": "Trello model id is required.",
    "callback_url": "Webhook callback URL is required (request field or TRELLO_CALLBACK_URL).",
}
