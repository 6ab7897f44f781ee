"""Tests for the gantt tree builder and date helpers."""

import copy
from datetime import date, datetime, timezone

from taskapp.domain import Milestone, Task
from taskapp.services.gantt import (
    build_task_tree,
    calc_date_range,
    get_dates_in_range,
    get_eligible_parents,
    get_task_bar_position,
    is_parent_task,
)


def task(task_id, parent=None, start=None, due=None, **kwargs):
    return Task(id=task_id, space_id="sp-1", title=task_id.upper(), parent_task_id=parent,
                start_date=start, due_date=due, **kwargs)


def ids(rows):
    return [node.task.id for node in rows]


class TestBuildTaskTree:

    def test_parent_followed_by_children(self):
        tasks = [task("a"), task("c"), task("b", parent="a")]
        rows = build_task_tree(tasks)

        assert ids(rows) == ["a", "b", "c"]
        assert [child.id for child in rows[0].children] == ["b"]
        assert rows[0].is_parent
        assert not rows[1].is_parent
        assert rows[2].children == []

    def test_every_task_appears_once(self):
        tasks = [
            task("p1"),
            task("c1", parent="p1"),
            task("p2"),
            task("c2", parent="p2"),
            task("c3", parent="p1"),
            task("orphan", parent="missing"),
        ]
        rows = build_task_tree(tasks)

        assert sorted(ids(rows)) == sorted(t.id for t in tasks)
        assert ids(rows) == ["p1", "c1", "c3", "p2", "c2", "orphan"]

    def test_missing_parent_is_top_level_after_real_parent(self):
        rows = build_task_tree([task("a"), task("b", parent="a"), task("c", parent="ZZZ")])

        assert ids(rows) == ["a", "b", "c"]
        assert [child.id for child in rows[0].children] == ["b"]
        assert rows[1].children == []
        assert rows[2].children == []

    def test_is_idempotent(self):
        tasks = [
            task("p", start=date(2024, 1, 2), due=date(2024, 1, 9)),
            task("c1", parent="p", start=date(2024, 1, 1), due=date(2024, 1, 5)),
            task("c2", parent="p", due=date(2024, 1, 12)),
            task("x", parent="x"),
        ]

        first = build_task_tree(tasks)
        second = build_task_tree(copy.deepcopy(tasks))

        assert [node.to_dict() for node in first] == [node.to_dict() for node in second]

    def test_orphan_is_top_level(self):
        rows = build_task_tree([task("x", parent="gone")])

        assert ids(rows) == ["x"]
        assert rows[0].children == []

    def test_grandchild_becomes_top_level(self):
        tasks = [task("a"), task("b", parent="a"), task("g", parent="b")]
        rows = build_task_tree(tasks)

        assert ids(rows) == ["a", "b", "g"]
        assert [child.id for child in rows[0].children] == ["b"]
        assert rows[2].children == []

    def test_self_reference_is_top_level(self):
        rows = build_task_tree([task("a", parent="a")])

        assert ids(rows) == ["a"]
        assert rows[0].children == []

    def test_two_task_cycle_terminates(self):
        rows = build_task_tree([task("a", parent="b"), task("b", parent="a")])

        assert sorted(ids(rows)) == ["a", "b"]

    def test_summary_dates_from_children(self):
        tasks = [
            task("p", start=date(2024, 1, 10), due=date(2024, 1, 12)),
            task("c1", parent="p", start=date(2024, 1, 5), due=date(2024, 1, 8)),
            task("c2", parent="p", start=date(2024, 1, 7), due=date(2024, 1, 20)),
        ]
        parent = build_task_tree(tasks)[0]

        assert parent.summary_start == date(2024, 1, 5)
        assert parent.summary_end == date(2024, 1, 20)

    def test_summary_dates_fall_back_to_parent(self):
        tasks = [
            task("p", start=date(2024, 1, 10), due=date(2024, 1, 12)),
            task("c", parent="p"),
        ]
        parent = build_task_tree(tasks)[0]

        assert parent.summary_start == date(2024, 1, 10)
        assert parent.summary_end == date(2024, 1, 12)

    def test_leaf_has_no_summary(self):
        node = build_task_tree([task("a", start=date(2024, 1, 1))])[0]

        assert node.summary_start is None
        assert node.summary_end is None

    def test_empty_input(self):
        assert build_task_tree([]) == []

    def test_to_dict(self):
        payload = build_task_tree([task("a"), task("b", parent="a")])[0].to_dict()

        assert payload["task"]["id"] == "a"
        assert payload["children"] == ["b"]


class TestParentHelpers:

    def test_is_parent_task(self):
        tasks = [task("a"), task("b", parent="a")]

        assert is_parent_task("a", tasks)
        assert not is_parent_task("b", tasks)

    def test_eligible_parents_exclude_children_and_self(self):
        tasks = [task("a"), task("b", parent="a"), task("c")]

        assert [t.id for t in get_eligible_parents(tasks, exclude_task_id="c")] == ["a"]


class TestDateRange:

    def test_default_window(self):
        start, end = calc_date_range([], [], date(2024, 3, 15))

        assert start == date(2024, 3, 12)
        assert end == date(2024, 5, 3)

    def test_extends_for_early_and_late_tasks(self):
        tasks = [task("a", start=date(2024, 2, 1), due=date(2024, 6, 1))]
        start, end = calc_date_range(tasks, [], date(2024, 3, 15))

        assert start == date(2024, 1, 25)
        assert end == date(2024, 6, 8)

    def test_undated_milestones_ignored(self):
        milestones = [
            Milestone(id="m1", space_id="sp-1"),
            Milestone(id="m2", space_id="sp-1", due_date=date(2024, 7, 1)),
        ]
        _, end = calc_date_range([], milestones, date(2024, 3, 15))

        assert end == date(2024, 7, 8)

    def test_dates_in_range_inclusive(self):
        days = get_dates_in_range(date(2024, 1, 30), date(2024, 2, 2))

        assert days == [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 2)]


class TestBarPosition:

    def test_full_bar(self):
        t = task("a", start=date(2024, 1, 3), due=date(2024, 1, 6))

        assert get_task_bar_position(t, date(2024, 1, 1), 20) == (40, 60)

    def test_start_only_is_one_day(self):
        t = task("a", start=date(2024, 1, 3))

        assert get_task_bar_position(t, date(2024, 1, 1), 20) == (40, 20)

    def test_creation_day_used_when_no_start(self):
        t = task("a", due=date(2024, 1, 6), created_at=datetime(2024, 1, 2, tzinfo=timezone.utc))

        assert get_task_bar_position(t, date(2024, 1, 1), 20) == (20, 80)

    def test_undated_task_has_no_bar(self):
        assert get_task_bar_position(task("a"), date(2024, 1, 1), 20) is None

    def test_minimum_width(self):
        t = task("a", start=date(2024, 1, 3), due=date(2024, 1, 3))

        assert get_task_bar_position(t, date(2024, 1, 1), 20) == (40, 4)
