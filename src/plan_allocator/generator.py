# ABOUTME: Builds a draft week-by-week study plan from upcoming exams and a risk profile.
# ABOUTME: Allocates hours per exam, then fills each week with targets, focus areas, and advice.

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from src.common.errors import InvalidInput, MissingRiskProfile, NoUpcomingExams
from src.common.schemas import RiskProfile, StudyPlan, StudyPlanWeek, UpcomingExam, as_utc, utcnow
from src.risk_scorer.aggregation import top_error_categories, top_weak_systems

from .allocation import (
    ExamAllocation,
    allocate_time_across_exams,
    find_relevant_exam_for_week,
    rotate_weekly_focus,
    target_questions_for,
    weeks_between,
)
from .recommendations import build_weekly_recommendation

DEFAULT_DAILY_HOURS_CAP = 4.0
FOCUS_SYSTEM_POOL = 3
FOCUS_SYSTEMS_PER_WEEK = 2
FOCUS_ERROR_CATEGORIES = 2


def select_upcoming_exams(exams: Sequence[UpcomingExam], start_date: datetime) -> List[UpcomingExam]:
    """Pending exams on or after the start date, soonest first."""
    start = as_utc(start_date)
    upcoming = [e for e in exams if e.is_pending and as_utc(e.scheduled_date) >= start]
    return sorted(upcoming, key=lambda e: as_utc(e.scheduled_date))


def build_weekly_breakdown(
    allocations: Sequence[ExamAllocation],
    profile: RiskProfile,
    total_weeks: int,
    weekly_hours_available: float,
) -> List[StudyPlanWeek]:
    weak_systems = top_weak_systems(dict(profile.system_weaknesses), limit=FOCUS_SYSTEM_POOL)
    error_focus = top_error_categories(dict(profile.error_counts), limit=FOCUS_ERROR_CATEGORIES)

    weeks: List[StudyPlanWeek] = []
    for week_number in range(1, total_weeks + 1):
        exam = find_relevant_exam_for_week(allocations, week_number)
        hours = exam.allocated_weekly_hours if exam is not None else weekly_hours_available
        focus_systems = rotate_weekly_focus(weak_systems, week_number, FOCUS_SYSTEMS_PER_WEEK)
        weeks.append(
            StudyPlanWeek(
                week_number=week_number,
                exam_id=exam.exam_id if exam is not None else None,
                allocated_hours=hours,
                target_questions=target_questions_for(hours),
                focus_systems=focus_systems,
                focus_error_categories=list(error_focus),
                recommendation=build_weekly_recommendation(exam, focus_systems, error_focus, profile.risk_tier),
            )
        )
    return weeks


def generate_study_plan(
    student_id: str,
    exams: Sequence[UpcomingExam],
    profile: Optional[RiskProfile],
    start_date: datetime,
    weekly_hours_available: float,
    daily_hours_cap: Optional[float] = None,
    title: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> StudyPlan:
    """
    Generate a draft study plan that runs until the last upcoming exam.

    Args:
        student_id: Student the plan is for
        exams: Candidate exams; only pending ones on or after start_date are used
        profile: The student's current risk profile
        start_date: First day of week 1
        weekly_hours_available: Hours the student can study per week
        daily_hours_cap: Stored on the plan; not applied to weekly allocations
        title: Plan title, defaults to one derived from the start date
        created_at: Creation timestamp, defaults to now

    Returns:
        StudyPlan in draft status with contiguous weeks 1..N
    """
    if weekly_hours_available is None or weekly_hours_available <= 0:
        raise InvalidInput("weekly_hours_available must be greater than 0")
    daily_hours_cap = DEFAULT_DAILY_HOURS_CAP if daily_hours_cap is None else daily_hours_cap
    if daily_hours_cap <= 0:
        raise InvalidInput("daily_hours_cap must be greater than 0")

    start_date = as_utc(start_date)
    upcoming = select_upcoming_exams(exams, start_date)
    if not upcoming:
        raise NoUpcomingExams(f"No upcoming exams scheduled for student {student_id}")
    if profile is None:
        raise MissingRiskProfile(f"Student {student_id} has no risk profile; calculate it first")

    end_date = as_utc(upcoming[-1].scheduled_date)
    total_weeks = weeks_between(start_date, end_date)
    if total_weeks <= 0:
        raise InvalidInput("Invalid date range: the last exam must fall after the start date")

    allocations = allocate_time_across_exams(
        upcoming,
        profile.overall_risk_score,
        start_date,
        weekly_hours_available,
    )
    weeks = build_weekly_breakdown(allocations, profile, total_weeks, weekly_hours_available)

    return StudyPlan(
        plan_id=uuid.uuid4().hex,
        student_id=student_id,
        title=title or f"Study Plan - {start_date.date().isoformat()}",
        status="draft",
        weekly_hours_available=float(weekly_hours_available),
        daily_hours_cap=float(daily_hours_cap),
        start_date=start_date,
        end_date=end_date,
        weeks=weeks,
        exam_allocations=[a.snapshot() for a in allocations],
        created_at=as_utc(created_at) if created_at is not None else utcnow(),
    )
