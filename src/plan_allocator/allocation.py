# ABOUTME: Splits a student's weekly study hours across upcoming exams by priority.
# ABOUTME: Picks the exam each plan week serves and rotates weak systems through weeks.

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from src.common.schemas import UpcomingExam, as_utc

QUESTIONS_PER_HOUR = 10
WEEK = timedelta(days=7)


@dataclass
class ExamAllocation:
    exam_id: str
    exam_name: str
    scheduled_date: datetime
    weeks_until_exam: int
    content_weight: float
    priority_score: float
    allocated_weekly_hours: float

    def snapshot(self) -> dict:
        return {
            "exam_id": self.exam_id,
            "exam_name": self.exam_name,
            "weeks_until_exam": self.weeks_until_exam,
            "allocated_weekly_hours": self.allocated_weekly_hours,
        }


def weeks_between(start: datetime, end: datetime) -> int:
    """Whole weeks from start to end, rounded up."""
    return math.ceil((as_utc(end) - as_utc(start)) / WEEK)


def priority_score(content_weight: float, weeks_until_exam: int, risk_score: float) -> float:
    """
    Nearer and heavier exams, and riskier students, pull more hours.

    priority = 2 * weight / weeks_until + risk / 100
    """
    return (content_weight * 2.0) / weeks_until_exam + risk_score / 100.0


def allocate_time_across_exams(
    exams: Sequence[UpcomingExam],
    risk_score: float,
    start_date: datetime,
    weekly_hours_available: float,
) -> List[ExamAllocation]:
    """
    Share weekly hours across exams in proportion to their priority scores.

    This is a soft weighting, not a capacity scheduler: no daily packing or
    cap is applied here.
    """

    scored = []
    for exam in exams:
        weeks_until = max(1, weeks_between(start_date, exam.scheduled_date))
        scored.append((exam, weeks_until, priority_score(exam.content_weight, weeks_until, risk_score)))

    total_priority = sum(score for _, _, score in scored)
    allocations: List[ExamAllocation] = []
    for exam, weeks_until, score in scored:
        if total_priority > 0:
            share = score / total_priority
        else:
            share = 1.0 / len(scored)
        allocations.append(
            ExamAllocation(
                exam_id=exam.exam_id,
                exam_name=exam.name,
                scheduled_date=as_utc(exam.scheduled_date),
                weeks_until_exam=weeks_until,
                content_weight=exam.content_weight,
                priority_score=score,
                allocated_weekly_hours=share * weekly_hours_available,
            )
        )
    return allocations


def find_relevant_exam_for_week(allocations: Sequence[ExamAllocation], week_number: int) -> Optional[ExamAllocation]:
    """Soonest exam that has not passed by this week; ties keep the earlier entry."""
    closest: Optional[ExamAllocation] = None
    for allocation in allocations:
        if allocation.weeks_until_exam < week_number:
            continue
        if closest is None or allocation.weeks_until_exam < closest.weeks_until_exam:
            closest = allocation
    return closest


def rotate_weekly_focus(focus_areas: Sequence[str], week_number: int, count: int = 2) -> List[str]:
    """
    Window of `count` areas sliding one step per week, wrapping around.

    With [A, B, C]: week 1 -> [A, B], week 2 -> [B, C], week 3 -> [C, A].
    """
    if not focus_areas:
        return []
    start = (week_number - 1) % len(focus_areas)
    return [focus_areas[(start + i) % len(focus_areas)] for i in range(min(count, len(focus_areas)))]


def target_questions_for(hours: float) -> int:
    # half-up rounding; round() would send 24.5 to 24
    return int(math.floor(hours * QUESTIONS_PER_HOUR + 0.5))
