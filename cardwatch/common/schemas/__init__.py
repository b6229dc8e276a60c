"""
Cardwatch Schemas

Card snapshots, violation records and message templates.
"""

from .card import Card, Label, Checklist, CheckItem, Attachment
from .violation import ViolationRecord
from .templates import (
    RULE_MESSAGES,
    RULE_ERROR_MESSAGE,
    SUBSCRIBE_VALIDATION_MESSAGES,
    render_rule_message,
    build_notification,
)

__all__ = [
    "Card",
    "Label",
    "Checklist",
    "CheckItem",
    "Attachment",
    "ViolationRecord",
    "RULE_MESSAGES",
    "RULE_ERROR_MESSAGE",
    "SUBSCRIBE_VALIDATION_MESSAGES",
    "render_rule_message",
    "build_notification",
]
