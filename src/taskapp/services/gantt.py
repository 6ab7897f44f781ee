"""Gantt chart tree and date utilities.

Tasks are displayed as a flat list in which each parent row is followed by
its children. Only one level of nesting exists: a task is a child only when
its parent is present in the list and is itself top-level.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..domain import Milestone, Task


@dataclass
class TaskTreeNode:
    """A gantt row. Parents carry an auto-computed summary range."""
    task: Task
    children: List[Task] = field(default_factory=list)
    summary_start: Optional[date] = None
    summary_end: Optional[date] = None

    @property
    def is_parent(self) -> bool:
        return bool(self.children)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task': self.task.to_dict(),
            'children': [child.id for child in self.children],
            'summary_start': self.summary_start.isoformat() if self.summary_start else None,
            'summary_end': self.summary_end.isoformat() if self.summary_end else None,
        }


def _compute_summary_dates(parent: Task, children: List[Task]) -> Tuple[Optional[date], Optional[date]]:
    """Min child start and max child due, each falling back to the parent's own date."""
    if not children:
        return None, None

    starts = [c.start_date for c in children if c.start_date]
    ends = [c.due_date for c in children if c.due_date]

    summary_start = min(starts) if starts else parent.start_date
    summary_end = max(ends) if ends else parent.due_date
    return summary_start, summary_end


def build_task_tree(tasks: List[Task]) -> List[TaskTreeNode]:
    """Build the ordered gantt rows from a flat task list.

    Top-level tasks keep their relative order and each is immediately
    followed by its children. Tasks pointing at a missing parent, at a
    parent that is itself a child, or at themselves are shown top-level,
    so every input task appears exactly once.
    """
    task_map: Dict[str, Task] = {}
    for task in tasks:
        task_map.setdefault(task.id, task)

    def parent_of(task: Task) -> Optional[Task]:
        if not task.parent_task_id or task.parent_task_id == task.id:
            return None
        parent = task_map.get(task.parent_task_id)
        if parent is None or parent.parent_task_id:
            return None
        return parent

    children_map: Dict[str, List[Task]] = {}
    for task in tasks:
        parent = parent_of(task)
        if parent is not None:
            children_map.setdefault(parent.id, []).append(task)

    result: List[TaskTreeNode] = []

    for task in tasks:
        if parent_of(task) is not None:
            continue

        # Rows sharing an id with an earlier row never own children
        children = children_map.get(task.id, []) if task_map[task.id] is task else []
        summary_start, summary_end = _compute_summary_dates(task, children)
        result.append(TaskTreeNode(
            task=task,
            children=children,
            summary_start=summary_start,
            summary_end=summary_end,
        ))

        for child in children:
            result.append(TaskTreeNode(task=child))

    return result


def is_parent_task(task_id: str, tasks: List[Task]) -> bool:
    """Check if a task has children in the current task list."""
    return any(t.parent_task_id == task_id for t in tasks)


def get_eligible_parents(tasks: List[Task], exclude_task_id: Optional[str] = None) -> List[Task]:
    """Tasks that may become a parent: those without a parent themselves."""
    return [t for t in tasks if not t.parent_task_id and t.id != exclude_task_id]


def calc_date_range(tasks: List[Task],
                    milestones: List[Milestone],
                    today: date,
                    past_days: int = 3,
                    future_days: int = 42,
                    padding: int = 7) -> Tuple[date, date]:
    """Calculate the visible date range of the chart.

    By default the chart runs from a few days before today to six weeks
    ahead. It extends backwards (with padding) for dates earlier than that
    and forwards for later due dates. Milestones without any date are
    ignored.
    """
    min_date = today - timedelta(days=past_days)
    max_date = today + timedelta(days=future_days)

    def extend_back(day: Optional[date]):
        nonlocal min_date
        if day and day < min_date:
            min_date = day - timedelta(days=padding)

    def extend_forward(day: Optional[date]):
        nonlocal max_date
        if day and day > max_date:
            max_date = day

    for task in tasks:
        extend_back(task.start_date)
        extend_back(task.due_date)
        extend_forward(task.due_date)

    for milestone in milestones:
        if not milestone.has_date_range:
            continue
        extend_back(milestone.start_date)
        extend_forward(milestone.due_date)

    return min_date, max_date + timedelta(days=padding)


def get_dates_in_range(start: date, end: date) -> List[date]:
    """Get all dates in a range, inclusive."""
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def get_task_bar_position(task: Task, range_start: date, day_width: int,
                          min_width: int = 4) -> Optional[Tuple[int, int]]:
    """Horizontal position and width of a task bar, or None if undated.

    The bar starts at ``start_date`` (falling back to the creation day).
    A task with only a start is drawn as one day; with only a due date it
    runs from the left edge of the chart.
    """
    task_start = task.start_date or (task.created_at.date() if task.created_at else None)
    task_end = task.due_date

    if task_start is None and task_end is None:
        return None

    if task_end is None:
        x = (task_start - range_start).days * day_width
        return x, max(day_width, min_width)

    end_x = (task_end - range_start).days * day_width
    x = 0 if task_start is None else (task_start - range_start).days * day_width
    return x, max(end_x - x, min_width)
