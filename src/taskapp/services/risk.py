"""Milestone risk forecasting.

Rule-based: the team's recent velocity (tasks completed per day over a
trailing window) is projected forward against each milestone's remaining
work and compared with its due date.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from ..domain import Milestone, Task
from ..utils.datetime import to_local_date, today_local


logger = logging.getLogger(__name__)

VELOCITY_WINDOW_DAYS = 14

# A projection up to this many days past the due date is "at risk";
# anything later needs attention.
AT_RISK_GRACE_DAYS = 3

# Zero velocity is not alarming until the milestone has been running for
# this many days or half of its timeline has elapsed.
INSUFFICIENT_DATA_DAYS = 7
UNDERWAY_TIMELINE_FRACTION = 0.5


class RiskStatus(Enum):
    """Forecast classification of a milestone."""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    NEEDS_ATTENTION = "needs_attention"


@dataclass
class RiskAssessment:
    """Risk forecast for a single milestone."""
    milestone_id: str
    status: RiskStatus
    velocity_per_day: float
    remaining_tasks: int
    projected_completion_date: Optional[date] = None
    client_blocked_tasks: int = 0
    all_client_blocked: bool = False
    available_days: int = 0
    required_days: Optional[float] = None  # None when velocity is zero
    insufficient_data: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'milestone_id': self.milestone_id,
            'status': self.status.value,
            'projected_completion_date': (
                self.projected_completion_date.isoformat() if self.projected_completion_date else None
            ),
            'velocity_per_day': self.velocity_per_day,
            'remaining_tasks': self.remaining_tasks,
            'client_blocked_tasks': self.client_blocked_tasks,
            'all_client_blocked': self.all_client_blocked,
            'available_days': self.available_days,
            'required_days': self.required_days,
            'insufficient_data': self.insufficient_data,
        }


def calculate_velocity(tasks: List[Task],
                       today: Optional[date] = None,
                       window_days: int = VELOCITY_WINDOW_DAYS,
                       utc_offset: timedelta = timedelta(0)) -> float:
    """Average number of tasks completed per day over the trailing window.

    The window covers the ``window_days`` days up to and including today.
    """
    if window_days <= 0:
        return 0.0
    if today is None:
        today = today_local(utc_offset)

    cutoff = today - timedelta(days=window_days)
    completed_in_window = 0
    for task in tasks:
        done_day = to_local_date(task.completion_time, utc_offset)
        if done_day is not None and cutoff < done_day <= today:
            completed_in_window += 1

    return completed_in_window / window_days


def _timeline_start(milestone: Milestone, milestone_tasks: List[Task],
                    utc_offset: timedelta) -> Optional[date]:
    if milestone.start_date:
        return milestone.start_date
    if milestone.created_at:
        return to_local_date(milestone.created_at, utc_offset)
    created = [to_local_date(t.created_at, utc_offset) for t in milestone_tasks if t.created_at]
    return min(created) if created else None


def _is_underway(start: Optional[date], due: date, today: date,
                 insufficient_data_days: int) -> bool:
    """Whether enough of the milestone has run for zero velocity to mean something."""
    if today >= due:
        return True
    if start is None:
        return False

    elapsed = (today - start).days
    if elapsed >= insufficient_data_days:
        return True

    timeline = (due - start).days
    return timeline > 0 and elapsed / timeline >= UNDERWAY_TIMELINE_FRACTION


def calculate_milestone_risk(milestone: Milestone,
                             milestone_tasks: List[Task],
                             velocity: float,
                             today: Optional[date] = None,
                             grace_days: int = AT_RISK_GRACE_DAYS,
                             insufficient_data_days: int = INSUFFICIENT_DATA_DAYS,
                             utc_offset: timedelta = timedelta(0)) -> RiskAssessment:
    """Classify a single milestone.

    Args:
        milestone: The milestone to assess
        milestone_tasks: Tasks belonging to this milestone
        velocity: Completed tasks per day (see calculate_velocity)
        today: Reference day
        grace_days: Days past due still classified as at_risk
        insufficient_data_days: Ramp-up period before zero velocity counts
        utc_offset: Offset used to turn timestamps into calendar days
    """
    if today is None:
        today = today_local(utc_offset)

    remaining = [t for t in milestone_tasks if not t.is_done]
    client_blocked = [t for t in remaining if t.is_client_blocked]

    assessment = RiskAssessment(
        milestone_id=milestone.id,
        status=RiskStatus.ON_TRACK,
        velocity_per_day=velocity,
        remaining_tasks=len(remaining),
        client_blocked_tasks=len(client_blocked),
    )

    # All tasks done
    if not remaining:
        assessment.required_days = 0.0
        return assessment

    # No due date - cannot assess
    if milestone.due_date is None:
        assessment.insufficient_data = True
        return assessment

    assessment.all_client_blocked = len(client_blocked) == len(remaining)
    assessment.available_days = (milestone.due_date - today).days

    if velocity <= 0:
        assessment.insufficient_data = True
        start = _timeline_start(milestone, milestone_tasks, utc_offset)
        if _is_underway(start, milestone.due_date, today, insufficient_data_days):
            assessment.status = RiskStatus.NEEDS_ATTENTION
        return assessment

    required_days = len(remaining) / velocity
    projected = today + timedelta(days=math.ceil(required_days))
    assessment.required_days = round(required_days, 2)
    assessment.projected_completion_date = projected

    overrun = (projected - milestone.due_date).days
    if overrun <= 0:
        assessment.status = RiskStatus.ON_TRACK
    elif overrun <= grace_days:
        assessment.status = RiskStatus.AT_RISK
    else:
        assessment.status = RiskStatus.NEEDS_ATTENTION

    return assessment


def calculate_risk_forecasts(tasks: List[Task],
                             milestones: List[Milestone],
                             today: Optional[date] = None,
                             window_days: int = VELOCITY_WINDOW_DAYS,
                             grace_days: int = AT_RISK_GRACE_DAYS,
                             insufficient_data_days: int = INSUFFICIENT_DATA_DAYS,
                             utc_offset: timedelta = timedelta(0)) -> Dict[str, RiskAssessment]:
    """Calculate risk forecasts for all milestones.

    Args:
        tasks: All tasks in the space
        milestones: All milestones in the space

    Returns:
        Mapping of milestone ID to risk assessment
    """
    if today is None:
        today = today_local(utc_offset)

    velocity = calculate_velocity(tasks, today, window_days, utc_offset)

    tasks_by_milestone: Dict[str, List[Task]] = defaultdict(list)
    for task in tasks:
        if task.milestone_id:
            tasks_by_milestone[task.milestone_id].append(task)

    forecasts: Dict[str, RiskAssessment] = {}
    for milestone in milestones:
        forecasts[milestone.id] = calculate_milestone_risk(
            milestone,
            tasks_by_milestone.get(milestone.id, []),
            velocity,
            today=today,
            grace_days=grace_days,
            insufficient_data_days=insufficient_data_days,
            utc_offset=utc_offset,
        )

    logger.debug(
        "Risk forecast for %d milestones at velocity %.3f/day", len(forecasts), velocity
    )
    return forecasts
