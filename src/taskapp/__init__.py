"""TaskApp - project analytics for client-facing task spaces."""

__version__ = "0.1.0"
__author__ = "TaskApp Team"

from .domain import (
    Ball,
    Milestone,
    Space,
    Task,
    TaskStatus,
)

__all__ = ["Task", "TaskStatus", "Ball", "Milestone", "Space", "__version__"]
