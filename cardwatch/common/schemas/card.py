"""
Card Snapshot Schema

Immutable snapshot of a Trello card, fetched once per evaluation.
Rules read from it; nothing in the validator mutates it.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Label(BaseModel):
    """Card label"""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    color: Optional[str] = None


class CheckItem(BaseModel):
    """Single checklist item; Trello states are 'complete' or 'incomplete'"""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    state: str = "incomplete"

    @property
    def is_complete(self) -> bool:
        return self.state == "complete"


class Checklist(BaseModel):
    """Checklist with its items"""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    check_items: List[CheckItem] = Field(default_factory=list)


class Attachment(BaseModel):
    """Card attachment (links included)"""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    url: str = ""


class Card(BaseModel):
    """
    Trello card snapshot.

    Built from the REST payload of GET /cards/{id} with attachments,
    checklists and list expanded.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Trello card id")
    name: str = Field(default="", description="Card title")
    desc: str = Field(default="", description="Card description (markdown)")
    labels: List[Label] = Field(default_factory=list)
    checklists: List[Checklist] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    id_members: List[str] = Field(default_factory=list)
    due: Optional[datetime] = None
    id_list: str = ""
    list_name: Optional[str] = None
    short_url: str = ""

    @property
    def checklist_items(self) -> List[CheckItem]:
        """All check items across every checklist"""
        return [item for checklist in self.checklists for item in checklist.check_items]

    @property
    def incomplete_items(self) -> List[CheckItem]:
        return [item for item in self.checklist_items if not item.is_complete]

    @classmethod
    def from_trello(cls, data: Dict[str, Any]) -> "Card":
        """
        Build a snapshot from a Trello REST card payload.

        Args:
            data: Decoded JSON from the Trello cards endpoint

        Returns:
            Card snapshot
        """
        checklists = [
            Checklist(
                id=checklist.get("id", ""),
                name=checklist.get("name", ""),
                check_items=[
                    CheckItem(
                        id=item.get("id", ""),
                        name=item.get("name", ""),
                        state=item.get("state", "incomplete"),
                    )
                    for item in checklist.get("checkItems", [])
                ],
            )
            for checklist in data.get("checklists") or []
        ]

        list_data = data.get("list") or {}

        return cls(
            id=data["id"],
            name=data.get("name") or "",
            desc=data.get("desc") or "",
            labels=[
                Label(id=label.get("id", ""), name=label.get("name") or "", color=label.get("color"))
                for label in data.get("labels") or []
            ],
            checklists=checklists,
            attachments=[
                Attachment(id=a.get("id", ""), name=a.get("name") or "", url=a.get("url") or "")
                for a in data.get("attachments") or []
            ],
            id_members=list(data.get("idMembers") or []),
            due=data.get("due"),
            id_list=data.get("idList") or "",
            list_name=list_data.get("name"),
            short_url=data.get("shortUrl") or data.get("url") or "",
        )
