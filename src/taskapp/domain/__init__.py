"""Domain models for TaskApp."""

from .task import Task, TaskStatus, Ball
from .milestone import Milestone, Space


class TaskAppError(Exception):
    """Base exception for TaskApp errors."""
    pass


__all__ = [
    "Task",
    "TaskStatus",
    "Ball",
    "Milestone",
    "Space",
    "TaskAppError",
]
