"""
Card Events

Closed set of event variants produced by the Trello handler.
The selector dispatches on the variant type; anything the validator does not
act on arrives as UnhandledEvent rather than being dropped silently.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class CardCreated:
    """createCard"""
    card_id: str
    actor: Optional[str] = None
    list_name: Optional[str] = None


@dataclass(frozen=True)
class CardMoved:
    """updateCard / action_move_card_from_list_to_list"""
    card_id: str
    list_before: str
    list_after: str
    actor: Optional[str] = None


@dataclass(frozen=True)
class CardArchived:
    """updateCard / action_archived_card, or deleteCard"""
    card_id: str
    actor: Optional[str] = None
    deleted: bool = False


@dataclass(frozen=True)
class UnhandledEvent:
    """Any other card action"""
    card_id: str
    action_type: str
    translation_key: Optional[str] = None
    actor: Optional[str] = None


CardEvent = Union[CardCreated, CardMoved, CardArchived, UnhandledEvent]
