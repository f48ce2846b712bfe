# ABOUTME: Tests study plan lifecycle transitions and weekly progress updates.
# ABOUTME: Ensures terminal states stick and progress values stay non-negative.

from datetime import datetime, timezone

import pytest

from src.common.errors import InvalidInput, InvalidStatusTransition, StudyPlanWeekNotFound
from src.common.schemas import StudyPlan, StudyPlanWeek
from src.plan_allocator.progress import (
    summarize_plan_progress,
    transition_plan_status,
    update_plan_settings,
    update_week_progress,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T1 = datetime(2024, 1, 8, tzinfo=timezone.utc)


def _plan(status="draft"):
    weeks = [
        StudyPlanWeek(
            week_number=n,
            allocated_hours=10.0,
            target_questions=100,
            focus_systems=[],
            focus_error_categories=[],
            recommendation="",
        )
        for n in (1, 2)
    ]
    return StudyPlan(
        plan_id="p1",
        student_id="s1",
        title="Study Plan - 2024-01-01",
        status=status,
        weekly_hours_available=10.0,
        daily_hours_cap=4.0,
        start_date=T0,
        end_date=T1,
        weeks=weeks,
    )


def test_draft_activates_and_records_timestamp():
    plan = transition_plan_status(_plan(), "active", at=T1)
    assert plan.status == "active"
    assert plan.activated_at == T1


def test_active_can_return_to_draft():
    plan = transition_plan_status(_plan("active"), "draft", at=T1)
    assert plan.status == "draft"


def test_completion_records_timestamp():
    plan = transition_plan_status(_plan("active"), "completed", at=T1)
    assert plan.completed_at == T1


@pytest.mark.parametrize(
    "start,target",
    [("draft", "completed"), ("draft", "archived"), ("completed", "active"), ("archived", "draft")],
)
def test_disallowed_transitions_raise(start, target):
    with pytest.raises(InvalidStatusTransition):
        transition_plan_status(_plan(start), target)


def test_same_status_is_a_no_op():
    plan = _plan("completed")
    assert transition_plan_status(plan, "completed").status == "completed"
    assert plan.completed_at is None


def test_unknown_status_is_invalid_input():
    with pytest.raises(InvalidInput):
        transition_plan_status(_plan(), "paused")


def test_week_progress_updates_only_given_fields():
    plan = _plan()
    week = update_week_progress(plan, 2, completed_hours=4.5)
    assert week.completed_hours == 4.5
    assert week.completed_questions == 0

    update_week_progress(plan, 2, completed_questions=30, is_completed=True)
    assert plan.week(2).completed_hours == 4.5
    assert plan.week(2).completed_questions == 30
    assert plan.week(2).is_completed is True


def test_missing_week_raises():
    with pytest.raises(StudyPlanWeekNotFound):
        update_week_progress(_plan(), 9, completed_hours=1)


@pytest.mark.parametrize("kwargs", [{"completed_hours": -1}, {"completed_questions": -3}])
def test_negative_progress_is_rejected(kwargs):
    with pytest.raises(InvalidInput):
        update_week_progress(_plan(), 1, **kwargs)


def test_settings_edit_keeps_weeks():
    plan = update_plan_settings(_plan(), weekly_hours_available=25, title="Renamed")
    assert plan.weekly_hours_available == 25.0
    assert plan.title == "Renamed"
    assert all(w.allocated_hours == 10.0 for w in plan.weeks)
    with pytest.raises(InvalidInput):
        update_plan_settings(plan, daily_hours_cap=0)


def test_progress_summary():
    plan = _plan()
    update_week_progress(plan, 1, completed_hours=10, completed_questions=80, is_completed=True)
    update_week_progress(plan, 2, completed_hours=5)

    summary = summarize_plan_progress(plan)
    assert summary["total_weeks"] == 2
    assert summary["completed_weeks"] == 1
    assert summary["allocated_hours"] == 20.0
    assert summary["completed_hours"] == 15.0
    assert summary["target_questions"] == 200
    assert summary["completed_questions"] == 80
    assert summary["completion_pct"] == pytest.approx(75.0)
