"""Burndown chart computation.

Builds a day-by-day series of ideal vs. actual remaining tasks for a
milestone, or for a whole space when no milestone is selected. The
computation is a pure function of the task/milestone snapshot the caller
already fetched:

- the date axis comes from the milestone's start/due dates (or the span
  of all milestones in project-wide mode);
- ``ideal_remaining`` falls linearly from the baseline task count to zero;
- ``actual_remaining`` counts baseline tasks still open at the end of
  each day;
- tasks created after the start day are reported separately in
  ``scope_added`` so scope creep shows up as its own band instead of
  flattening the actual line.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..domain import Milestone, Task, TaskAppError
from ..utils.datetime import date_range, to_local_date, today_local


logger = logging.getLogger(__name__)

PROJECT_WIDE_ID = "all"
PROJECT_WIDE_NAME = "Entire project"

# Used when a milestone has a start but no due date
DEFAULT_SPAN_DAYS = 14

MISSING_DATE_RANGE_MESSAGE = "Please configure a start/due date for the milestone"
INVERTED_DATE_RANGE_MESSAGE = "Please configure a due date on or after the start date"

# Longest chart axis, in days (about ten years)
MAX_SPAN_DAYS = 3660
SPAN_TOO_LONG_MESSAGE = f"The milestone spans more than {MAX_SPAN_DAYS} days; please shorten its date range"


class BurndownConfigurationError(TaskAppError):
    """The scope has no usable date range; the user has to fix its dates."""
    pass


class MilestoneNotFoundError(TaskAppError):
    """The requested milestone does not exist in the space."""
    pass


@dataclass
class BurndownPoint:
    """One day of the burndown chart."""
    date: date
    ideal_remaining: float
    actual_remaining: Optional[int]  # None for days after today
    scope_added: int
    completed: Optional[int] = None
    completion_rate: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'ideal_remaining': self.ideal_remaining,
            'actual_remaining': self.actual_remaining,
            'scope_added': self.scope_added,
            'completed': self.completed,
            'completion_rate': self.completion_rate,
        }


@dataclass
class BurndownSummary:
    total: int
    remaining: int
    scope_added: int
    completed: int
    start_date: date
    end_date: date

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'remaining': self.remaining,
            'scope_added': self.scope_added,
            'completed': self.completed,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
        }


@dataclass
class BurndownData:
    """Complete burndown result for a milestone or a whole space."""
    milestone_id: str
    milestone_name: str
    summary: BurndownSummary
    points: List[BurndownPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'milestone_id': self.milestone_id,
            'milestone_name': self.milestone_name,
            'summary': self.summary.to_dict(),
            'points': [point.to_dict() for point in self.points],
        }


def _resolve_axis(starts: Iterable[date], ends: Iterable[date], created: Iterable[date],
                  today: date, default_span_days: int) -> Tuple[date, date]:
    """Pick the chart's first and last day.

    Raises:
        BurndownConfigurationError: If no start or due date is configured,
            the due date precedes the start date, or the range exceeds
            MAX_SPAN_DAYS
    """
    starts = list(starts)
    ends = list(ends)
    created = list(created)

    start = min(starts) if starts else None
    end = max(ends) if ends else None

    if start is None and end is None:
        raise BurndownConfigurationError(MISSING_DATE_RANGE_MESSAGE)

    if start is None:
        start = min(created) if created else today
    if end is None:
        end = today + timedelta(days=min(default_span_days, (date.max - today).days))

    if end < start:
        raise BurndownConfigurationError(INVERTED_DATE_RANGE_MESSAGE)
    if (end - start).days > MAX_SPAN_DAYS:
        raise BurndownConfigurationError(SPAN_TOO_LONG_MESSAGE)

    return start, end


def _ideal_remaining(total: int, day_index: int, span_days: int) -> float:
    if span_days <= 0:
        return 0.0
    return round(max(0.0, total * (1 - day_index / span_days)), 2)


def compute_burndown(tasks: List[Task],
                     milestones: List[Milestone],
                     space_id: str,
                     milestone_id: Optional[str] = None,
                     today: Optional[date] = None,
                     default_span_days: int = DEFAULT_SPAN_DAYS,
                     utc_offset: timedelta = timedelta(0)) -> BurndownData:
    """Compute the burndown series for a milestone or a whole space.

    Args:
        tasks: Task snapshot for the space
        milestones: Milestones of the space
        space_id: Space the computation is scoped to
        milestone_id: Restrict to this milestone; None for project-wide
        today: Reference day; days after it have no actual values
        default_span_days: Axis length when no due date is configured
        utc_offset: Offset used to turn timestamps into calendar days

    Returns:
        BurndownData with one point per day of the axis

    Raises:
        ValueError: If space_id is empty
        MilestoneNotFoundError: If milestone_id is not a milestone of the space
        BurndownConfigurationError: If no usable date range exists
    """
    if not space_id:
        raise ValueError("space_id is required")

    if today is None:
        today = today_local(utc_offset)

    space_milestones = [m for m in milestones if m.space_id == space_id]
    space_tasks = [t for t in tasks if t.space_id == space_id]

    if milestone_id is None:
        dated = [m for m in space_milestones if m.has_date_range]
        start, end = _resolve_axis(
            (m.start_date for m in dated if m.start_date),
            (m.due_date for m in dated if m.due_date),
            (to_local_date(m.created_at, utc_offset) for m in space_milestones if m.created_at),
            today,
            default_span_days,
        )
        scoped_tasks = space_tasks
        scope_id, scope_name = PROJECT_WIDE_ID, PROJECT_WIDE_NAME
    else:
        milestone = next((m for m in space_milestones if m.id == milestone_id), None)
        if milestone is None:
            raise MilestoneNotFoundError(f"Milestone not found: {milestone_id}")

        start, end = _resolve_axis(
            [milestone.start_date] if milestone.start_date else [],
            [milestone.due_date] if milestone.due_date else [],
            [to_local_date(milestone.created_at, utc_offset)] if milestone.created_at else [],
            today,
            default_span_days,
        )
        scoped_tasks = [t for t in space_tasks if t.milestone_id == milestone_id]
        scope_id, scope_name = milestone.id, milestone.name

    # Split baseline work from tasks that arrived after the start day
    baseline: List[Task] = []
    added_by_day: Counter = Counter()
    for task in scoped_tasks:
        created_day = to_local_date(task.created_at, utc_offset)
        if created_day is not None and created_day > start:
            added_by_day[created_day] += 1
        else:
            baseline.append(task)

    total = len(baseline)

    # Done tasks without any timestamp count as completed before the axis
    completed_by_day: Counter = Counter()
    for task in baseline:
        if not task.is_done:
            continue
        done_day = to_local_date(task.completion_time, utc_offset)
        completed_by_day[min(done_day, start) if done_day else start] += 1

    span_days = (end - start).days
    points: List[BurndownPoint] = []
    completed = 0
    scope_added = 0

    for index, day in enumerate(date_range(start, end)):
        completed += completed_by_day.get(day, 0)
        scope_added += added_by_day.get(day, 0)
        ideal = _ideal_remaining(total, index, span_days)

        if day > today:
            points.append(BurndownPoint(
                date=day,
                ideal_remaining=ideal,
                actual_remaining=None,
                scope_added=scope_added,
            ))
            continue

        completion_rate = round(completed / total * 100, 1) if total > 0 else 0.0
        points.append(BurndownPoint(
            date=day,
            ideal_remaining=ideal,
            actual_remaining=total - completed,
            scope_added=scope_added,
            completed=completed,
            completion_rate=completion_rate,
        ))

    summary = BurndownSummary(
        total=total,
        remaining=sum(1 for t in scoped_tasks if not t.is_done),
        scope_added=sum(added_by_day.values()),
        completed=sum(1 for t in scoped_tasks if t.is_done),
        start_date=start,
        end_date=end,
    )

    logger.debug(
        "Burndown for space %s scope %s: %d days, %d baseline tasks, %d added",
        space_id, scope_id, len(points), total, summary.scope_added,
    )

    return BurndownData(
        milestone_id=scope_id,
        milestone_name=scope_name,
        summary=summary,
        points=points,
    )
