"""
Violation Record Schema

Persisted marker that a card currently fails validation.
A card with no record is valid (or was never checked); records are deleted,
never flagged valid, once the card is fixed.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ViolationRecord(BaseModel):
    """One record per card id; warning_count only grows while the card stays invalid"""
    card_id: str = Field(..., description="Trello card id (unique key)")
    is_valid: bool = Field(default=False)
    warning_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
