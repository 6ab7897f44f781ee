"""Milestone and space data models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..utils.datetime import ensure_aware, parse_date, parse_timestamp, to_iso_string


@dataclass
class Milestone:
    """Milestone grouping tasks of a space."""

    id: str
    space_id: str
    name: str = ""
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = ensure_aware(self.created_at)
        self.completed_at = ensure_aware(self.completed_at)

    @property
    def has_date_range(self) -> bool:
        """False when neither start nor due date is configured."""
        return self.start_date is not None or self.due_date is not None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "space_id": self.space_id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": to_iso_string(self.created_at),
            "completed_at": to_iso_string(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        return cls(
            id=str(data["id"]),
            space_id=str(data.get("space_id", "")),
            name=data.get("name", ""),
            start_date=parse_date(data.get("start_date")),
            due_date=parse_date(data.get("due_date")),
            created_at=parse_timestamp(data.get("created_at")),
            completed_at=parse_timestamp(data.get("completed_at")),
        )


@dataclass
class Space:
    """A project space; members are the user ids allowed to read it."""

    id: str
    name: str = ""
    org_id: Optional[str] = None
    members: List[str] = field(default_factory=list)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.members

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "org_id": self.org_id,
            "members": list(self.members),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Space":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            org_id=data.get("org_id"),
            members=[str(m) for m in data.get("members") or []],
        )
