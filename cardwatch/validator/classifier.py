"""
Category Classifier

Decides whether a card is development work. The category gates rules that
only make sense for code changes (e.g. pull request attachments).
"""

from enum import Enum

from ..common.schemas.card import Card

DEFAULT_NON_DEV_MARKER = "non-dev"


class Category(str, Enum):
    """Card categories"""
    DEVELOPMENT = "development"
    OTHER = "other"


def classify(card: Card, marker: str = DEFAULT_NON_DEV_MARKER) -> Category:
    """
    Derive the card category from its labels.

    Any label whose name contains the marker (case-insensitive) makes the
    card non-development; otherwise it is development.
    """
    marker = marker.lower()
    for label in card.labels:
        if marker and marker in (label.name or "").lower():
            return Category.OTHER
    return Category.DEVELOPMENT
