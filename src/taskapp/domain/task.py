"""Task data model for TaskApp spaces."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..utils.datetime import ensure_aware, parse_date, parse_timestamp, to_iso_string


class TaskStatus(Enum):
    """Task workflow states."""
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"
    CONSIDERING = "considering"


class Ball(Enum):
    """Which side owns the next action on a task."""
    CLIENT = "client"
    INTERNAL = "internal"


def _optional_id(value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


@dataclass
class Task:
    """A task row as fetched from the space's task table."""

    id: str
    space_id: str
    title: str = ""
    status: TaskStatus = TaskStatus.BACKLOG
    ball: Ball = Ball.INTERNAL

    # Relationships
    milestone_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    assignee_id: Optional[str] = None

    # Scheduling (calendar days)
    start_date: Optional[date] = None
    due_date: Optional[date] = None

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        # Rows built by hand in tests and scripts often pass raw strings
        if not isinstance(self.status, TaskStatus):
            self.status = TaskStatus(self.status)
        if not isinstance(self.ball, Ball):
            self.ball = Ball(self.ball)

        self.created_at = ensure_aware(self.created_at)
        self.updated_at = ensure_aware(self.updated_at)
        self.completed_at = ensure_aware(self.completed_at)

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    @property
    def is_client_blocked(self) -> bool:
        """Open task waiting on the client."""
        return not self.is_done and self.ball == Ball.CLIENT

    @property
    def completion_time(self) -> Optional[datetime]:
        """When the task was completed, if it is done.

        Older rows never recorded ``completed_at``; for those the last
        update of a done task is the best available completion time.
        """
        if not self.is_done:
            return None
        return self.completed_at or self.updated_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert the task to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "space_id": self.space_id,
            "title": self.title,
            "status": self.status.value,
            "ball": self.ball.value,
            "milestone_id": self.milestone_id,
            "parent_task_id": self.parent_task_id,
            "assignee_id": self.assignee_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": to_iso_string(self.created_at),
            "updated_at": to_iso_string(self.updated_at),
            "completed_at": to_iso_string(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create a Task from a database-style row.

        Raises:
            ValueError: On an unknown status/ball or an unparseable date
        """
        return cls(
            id=str(data["id"]),
            space_id=str(data.get("space_id", "")),
            title=data.get("title", ""),
            status=TaskStatus(data.get("status") or "backlog"),
            ball=Ball(data.get("ball") or "internal"),
            milestone_id=_optional_id(data.get("milestone_id")),
            parent_task_id=_optional_id(data.get("parent_task_id")),
            assignee_id=_optional_id(data.get("assignee_id")),
            start_date=parse_date(data.get("start_date")),
            due_date=parse_date(data.get("due_date")),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            completed_at=parse_timestamp(data.get("completed_at")),
        )
