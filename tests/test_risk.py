"""Tests for milestone risk forecasting."""

import copy
from datetime import date, datetime, timedelta, timezone

import pytest

from taskapp.domain import Milestone, Task
from taskapp.services.risk import (
    RiskStatus,
    calculate_milestone_risk,
    calculate_risk_forecasts,
    calculate_velocity,
)


TODAY = date(2024, 3, 15)


def days_ago(n: int) -> datetime:
    day = TODAY - timedelta(days=n)
    return datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc)


def task(task_id, status="todo", milestone_id="ms-1", ball="internal", **kwargs):
    return Task(id=task_id, space_id="sp-1", status=status, ball=ball,
                milestone_id=milestone_id, **kwargs)


def milestone(start_offset=None, due_offset=None, milestone_id="ms-1"):
    return Milestone(
        id=milestone_id,
        space_id="sp-1",
        start_date=TODAY + timedelta(days=start_offset) if start_offset is not None else None,
        due_date=TODAY + timedelta(days=due_offset) if due_offset is not None else None,
    )


class TestVelocity:

    def test_counts_completions_in_window(self):
        tasks = [task(f"d{i}", status="done", completed_at=days_ago(i)) for i in range(7)]

        assert calculate_velocity(tasks, TODAY) == pytest.approx(0.5)

    def test_window_boundaries(self):
        tasks = [
            task("today", status="done", completed_at=days_ago(0)),
            task("edge", status="done", completed_at=days_ago(13)),
            task("cutoff", status="done", completed_at=days_ago(14)),
            task("old", status="done", completed_at=days_ago(30)),
        ]

        assert calculate_velocity(tasks, TODAY) == pytest.approx(2 / 14)

    def test_open_tasks_ignored(self):
        tasks = [task("open", completed_at=days_ago(1))]

        assert calculate_velocity(tasks, TODAY) == 0.0

    def test_zero_window(self):
        assert calculate_velocity([task("d", status="done", completed_at=days_ago(1))], TODAY, window_days=0) == 0.0


class TestMilestoneRisk:

    def test_no_remaining_tasks_is_on_track(self):
        tasks = [task("a", status="done"), task("b", status="done")]
        result = calculate_milestone_risk(milestone(-20, -5), tasks, velocity=0.0, today=TODAY)

        assert result.status == RiskStatus.ON_TRACK
        assert result.remaining_tasks == 0
        assert result.required_days == 0

    def test_just_started_with_zero_velocity_is_on_track(self):
        result = calculate_milestone_risk(milestone(-1, 30), [task("a")], velocity=0.0, today=TODAY)

        assert result.status == RiskStatus.ON_TRACK
        assert result.insufficient_data is True
        assert result.available_days == 30

    def test_overdue_with_zero_velocity_needs_attention(self):
        result = calculate_milestone_risk(milestone(-30, -5), [task("a")], velocity=0.0, today=TODAY)

        assert result.status == RiskStatus.NEEDS_ATTENTION
        assert result.insufficient_data is True
        assert result.projected_completion_date is None
        assert result.required_days is None

    def test_zero_velocity_after_a_week_needs_attention(self):
        result = calculate_milestone_risk(milestone(-7, 30), [task("a")], velocity=0.0, today=TODAY)

        assert result.status == RiskStatus.NEEDS_ATTENTION

    def test_zero_velocity_past_half_timeline_needs_attention(self):
        result = calculate_milestone_risk(milestone(-4, 2), [task("a")], velocity=0.0, today=TODAY)

        assert result.status == RiskStatus.NEEDS_ATTENTION

    def test_no_due_date_cannot_be_assessed(self):
        result = calculate_milestone_risk(milestone(-10, None), [task("a")], velocity=1.0, today=TODAY)

        assert result.status == RiskStatus.ON_TRACK
        assert result.insufficient_data is True

    @pytest.mark.parametrize("due_offset, expected", [
        (10, RiskStatus.ON_TRACK),
        (20, RiskStatus.ON_TRACK),
        (8, RiskStatus.AT_RISK),
        (7, RiskStatus.AT_RISK),
        (6, RiskStatus.NEEDS_ATTENTION),
        (-1, RiskStatus.NEEDS_ATTENTION),
    ])
    def test_projection_against_due_date(self, due_offset, expected):
        tasks = [task(f"t{i}") for i in range(10)]
        result = calculate_milestone_risk(milestone(-5, due_offset), tasks, velocity=1.0, today=TODAY)

        assert result.status == expected
        assert result.projected_completion_date == TODAY + timedelta(days=10)
        assert result.required_days == 10

    def test_projection_rounds_up_partial_days(self):
        tasks = [task(f"t{i}") for i in range(3)]
        result = calculate_milestone_risk(milestone(-5, 10), tasks, velocity=2.0, today=TODAY)

        assert result.required_days == 1.5
        assert result.projected_completion_date == TODAY + timedelta(days=2)

    def test_client_blocked_counts(self):
        tasks = [
            task("a", ball="client"),
            task("b", ball="client"),
            task("c", status="done", ball="client"),
        ]
        result = calculate_milestone_risk(milestone(-5, 10), tasks, velocity=1.0, today=TODAY)

        assert result.client_blocked_tasks == 2
        assert result.all_client_blocked is True

    def test_mixed_ball_not_all_blocked(self):
        tasks = [task("a", ball="client"), task("b")]
        result = calculate_milestone_risk(milestone(-5, 10), tasks, velocity=1.0, today=TODAY)

        assert result.client_blocked_tasks == 1
        assert result.all_client_blocked is False


class TestRiskForecasts:

    def test_one_assessment_per_milestone(self):
        milestones = [milestone(-5, 10, "ms-1"), milestone(-5, 10, "ms-2"), milestone(None, None, "ms-3")]
        tasks = [
            task("a", milestone_id="ms-1"),
            task("b", milestone_id="ms-2", status="done", completed_at=days_ago(1)),
            task("c", milestone_id=None, status="done", completed_at=days_ago(2)),
        ]

        forecasts = calculate_risk_forecasts(tasks, milestones, today=TODAY)

        assert set(forecasts) == {"ms-1", "ms-2", "ms-3"}
        # Velocity is measured across the whole space
        assert forecasts["ms-1"].velocity_per_day == pytest.approx(2 / 14)
        assert forecasts["ms-1"].remaining_tasks == 1
        assert forecasts["ms-2"].remaining_tasks == 0
        assert forecasts["ms-3"].remaining_tasks == 0

    def test_serialization(self):
        forecasts = calculate_risk_forecasts([task("a")], [milestone(-5, 10)], today=TODAY)
        payload = forecasts["ms-1"].to_dict()

        assert payload["status"] == "on_track"
        assert payload["insufficient_data"] is True
        assert payload["projected_completion_date"] is None

    def test_is_idempotent(self):
        milestones = [milestone(-10, 3, "ms-1"), milestone(-5, -1, "ms-2"), milestone(None, None, "ms-3")]
        tasks = [
            task("a", milestone_id="ms-1"),
            task("b", milestone_id="ms-1", status="done", completed_at=days_ago(3)),
            task("c", milestone_id="ms-2", ball="client"),
        ]

        first = calculate_risk_forecasts(tasks, milestones, today=TODAY)
        second = calculate_risk_forecasts(copy.deepcopy(tasks), copy.deepcopy(milestones), today=TODAY)

        assert {k: v.to_dict() for k, v in first.items()} == {k: v.to_dict() for k, v in second.items()}
