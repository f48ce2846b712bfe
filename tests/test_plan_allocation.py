# ABOUTME: Tests study plan generation and priority-weighted hour allocation.
# ABOUTME: Covers week linking, focus rotation, question targets, and input failures.

from datetime import datetime, timedelta, timezone

import pytest

from src.common.errors import InvalidInput, MissingRiskProfile, NoUpcomingExams
from src.common.schemas import ERROR_CATEGORIES, RiskProfile, UpcomingExam
from src.plan_allocator.allocation import (
    allocate_time_across_exams,
    find_relevant_exam_for_week,
    rotate_weekly_focus,
    target_questions_for,
    weeks_between,
)
from src.plan_allocator.generator import generate_study_plan

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _profile(score=60.0, weaknesses=None, counts=None):
    error_counts = {category: 0 for category in ERROR_CATEGORIES}
    error_counts.update(counts or {"knowledge_deficit": 4, "misread": 2})
    return RiskProfile(
        student_id="s1",
        overall_risk_score=score,
        risk_tier="high",
        error_counts=error_counts,
        system_weaknesses=weaknesses if weaknesses is not None else {"cardiovascular": 5, "renal": 3, "pulmonary": 1},
        trend_direction="stable",
        recent_performance=0.7,
        total_errors_analyzed=sum(error_counts.values()),
        last_calculated_at=START,
    )


def _exam(exam_id, days_out, weight=1.0, outcome=None):
    return UpcomingExam(
        exam_id=exam_id,
        student_id="s1",
        name=f"Exam {exam_id}",
        scheduled_date=START + timedelta(days=days_out),
        content_weight=weight,
        outcome=outcome,
    )


def test_single_exam_four_weeks_out_fills_every_week():
    plan = generate_study_plan(
        "s1",
        [_exam("e1", 28)],
        _profile(score=60.0),
        start_date=START,
        weekly_hours_available=20,
        daily_hours_cap=4,
    )

    assert plan.status == "draft"
    assert [w.week_number for w in plan.weeks] == [1, 2, 3, 4]
    assert all(w.exam_id == "e1" for w in plan.weeks)
    assert all(w.allocated_hours == pytest.approx(20.0) for w in plan.weeks)
    assert all(w.target_questions == 200 for w in plan.weeks)
    assert plan.end_date == START + timedelta(days=28)
    assert plan.daily_hours_cap == 4.0
    assert plan.title == "Study Plan - 2024-01-01"
    assert plan.exam_allocations == [
        {"exam_id": "e1", "exam_name": "Exam e1", "weeks_until_exam": 4, "allocated_weekly_hours": 20.0}
    ]


def test_focus_systems_rotate_with_cycle_of_three():
    plan = generate_study_plan("s1", [_exam("e1", 28)], _profile(), START, weekly_hours_available=20)

    assert [w.focus_systems for w in plan.weeks] == [
        ["cardiovascular", "renal"],
        ["renal", "pulmonary"],
        ["pulmonary", "cardiovascular"],
        ["cardiovascular", "renal"],
    ]
    assert all(w.focus_error_categories == ["knowledge_deficit", "misread"] for w in plan.weeks)
    assert all(w.focus_topics == [] for w in plan.weeks)


def test_no_weaknesses_yield_empty_focus():
    profile = _profile(weaknesses={}, counts={"knowledge_deficit": 0, "misread": 0})
    plan = generate_study_plan("s1", [_exam("e1", 14)], profile, START, weekly_hours_available=10)
    assert all(w.focus_systems == [] and w.focus_error_categories == [] for w in plan.weeks)


def test_two_exams_split_hours_by_priority():
    exams = [_exam("near", 14), _exam("far", 28)]
    plan = generate_study_plan("s1", exams, _profile(score=0.0), START, weekly_hours_available=20)

    # priorities 2/2 = 1.0 and 2/4 = 0.5
    assert [w.exam_id for w in plan.weeks] == ["near", "near", "far", "far"]
    assert plan.weeks[0].allocated_hours == pytest.approx(20 * 2 / 3)
    assert plan.weeks[2].allocated_hours == pytest.approx(20 / 3)
    assert plan.weeks[0].target_questions == 133
    assert plan.weeks[2].target_questions == 67


def test_zero_priority_exams_split_hours_equally():
    allocations = allocate_time_across_exams(
        [_exam("a", 7, weight=0.0), _exam("b", 21, weight=0.0)],
        risk_score=0.0,
        start_date=START,
        weekly_hours_available=12,
    )
    assert [a.allocated_weekly_hours for a in allocations] == [6.0, 6.0]


def test_exam_inside_first_week_counts_as_one_week():
    allocations = allocate_time_across_exams([_exam("a", 2)], 50.0, START, 10)
    assert allocations[0].weeks_until_exam == 1
    assert allocations[0].priority_score == pytest.approx(2.5)


def test_relevant_exam_is_soonest_not_yet_passed():
    allocations = allocate_time_across_exams([_exam("a", 14), _exam("b", 35)], 0.0, START, 10)
    assert find_relevant_exam_for_week(allocations, 1).exam_id == "a"
    assert find_relevant_exam_for_week(allocations, 2).exam_id == "a"
    assert find_relevant_exam_for_week(allocations, 3).exam_id == "b"
    assert find_relevant_exam_for_week(allocations, 6) is None


def test_weeks_between_rounds_up():
    assert weeks_between(START, START + timedelta(days=7)) == 1
    assert weeks_between(START, START + timedelta(days=8)) == 2
    assert weeks_between(START, START) == 0


def test_rotation_helpers():
    assert rotate_weekly_focus(["A", "B", "C"], 4) == ["A", "B"]
    assert rotate_weekly_focus(["A"], 3) == ["A"]
    assert rotate_weekly_focus([], 1) == []


def test_target_questions_round_half_up():
    assert target_questions_for(20) == 200
    assert target_questions_for(0.25) == 3


def test_zero_upcoming_exams_fail():
    with pytest.raises(NoUpcomingExams):
        generate_study_plan("s1", [], _profile(), START, weekly_hours_available=20)


def test_exams_are_checked_before_profile():
    with pytest.raises(NoUpcomingExams):
        generate_study_plan("s1", [], None, START, weekly_hours_available=20)
    with pytest.raises(MissingRiskProfile):
        generate_study_plan("s1", [_exam("e1", 28)], None, START, weekly_hours_available=20)


def test_completed_and_past_exams_are_ignored():
    exams = [_exam("done", 14, outcome="pass"), _exam("past", -7)]
    with pytest.raises(NoUpcomingExams):
        generate_study_plan("s1", exams, _profile(), START, weekly_hours_available=20)


@pytest.mark.parametrize("hours,cap", [(0, 4), (-5, 4), (20, 0)])
def test_non_positive_hours_are_rejected(hours, cap):
    with pytest.raises(InvalidInput):
        generate_study_plan("s1", [_exam("e1", 28)], _profile(), START, weekly_hours_available=hours, daily_hours_cap=cap)


def test_exam_on_start_date_is_rejected():
    with pytest.raises(InvalidInput):
        generate_study_plan("s1", [_exam("e1", 0)], _profile(), START, weekly_hours_available=20)


def test_daily_cap_is_stored_but_not_applied():
    plan = generate_study_plan("s1", [_exam("e1", 14)], _profile(), START, weekly_hours_available=40, daily_hours_cap=1)
    assert plan.daily_hours_cap == 1.0
    assert all(w.allocated_hours == pytest.approx(40.0) for w in plan.weeks)
