# ABOUTME: Estimates how moving an exam or changing weekly hours would shift risk.
# ABOUTME: Uses fixed heuristics for quick UI feedback, not a re-run of the scorer.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from src.common.errors import MissingRiskProfile
from src.common.schemas import RiskProfile, StudyPlan, UpcomingExam, as_utc, utcnow

from .allocation import weeks_between

EARLIER_EXAM_RISK_DELTA = 5.0
LATER_EXAM_RISK_DELTA = -3.0
BASELINE_WEEKLY_HOURS = 20.0
ADVISORY_NOTE = (
    "Projections are heuristic estimates for planning conversations; they are not a recalculated risk score."
)


@dataclass(frozen=True)
class ExamDateChange:
    exam_id: str
    new_date: datetime


@dataclass
class SimulationResult:
    projected_risk_change: float
    weekly_hour_impact: List[float] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    advisory_note: str = ADVISORY_NOTE


def _exam_date_effect(
    exams: Sequence[UpcomingExam],
    change: ExamDateChange,
    reference_time: datetime,
) -> Optional[tuple]:
    exam = next((e for e in exams if e.exam_id == change.exam_id), None)
    if exam is None:
        return None
    original_weeks = weeks_between(reference_time, exam.scheduled_date)
    new_weeks = weeks_between(reference_time, change.new_date)
    if new_weeks < original_weeks:
        return (
            EARLIER_EXAM_RISK_DELTA,
            f"Moving the exam {original_weeks - new_weeks} week(s) earlier will increase pressure. "
            "Consider increasing weekly study hours.",
        )
    shift = f"{new_weeks - original_weeks} week(s) later" if new_weeks > original_weeks else "later"
    return (
        LATER_EXAM_RISK_DELTA,
        f"Moving the exam {shift} provides more preparation time, potentially reducing risk.",
    )


def simulate_plan_adjustment(
    profile: Optional[RiskProfile],
    exams: Sequence[UpcomingExam],
    exam_date_change: Optional[ExamDateChange] = None,
    hours_change: Optional[float] = None,
    plan: Optional[StudyPlan] = None,
    reference_time: Optional[datetime] = None,
) -> SimulationResult:
    """
    Project the risk-score delta of a what-if adjustment.

    Moving an exam earlier adds 5, later subtracts 3. Each hour of weekly study
    added relative to a 20-hour baseline lowers the projection by half a point
    (10% of the percentage change). An unknown exam id is ignored.
    """

    if profile is None:
        raise MissingRiskProfile("Risk profile not found; calculate it before simulating")
    reference_time = as_utc(reference_time) if reference_time is not None else utcnow()

    projected = 0.0
    recommendations: List[str] = []

    if exam_date_change is not None:
        effect = _exam_date_effect(exams, exam_date_change, reference_time)
        if effect is not None:
            delta, message = effect
            projected += delta
            recommendations.append(message)

    weekly_hour_impact: List[float] = []
    if hours_change:
        percent_change = hours_change / BASELINE_WEEKLY_HOURS * 100.0
        projected += -percent_change / 10.0
        if hours_change > 0:
            recommendations.append(
                f"Increasing study time by {hours_change:g} hours/week could reduce overall risk score."
            )
        else:
            recommendations.append(
                f"Decreasing study time by {abs(hours_change):g} hours/week may increase risk. "
                "Ensure efficient use of remaining time."
            )
        if plan is not None and plan.weekly_hours_available > 0:
            ratio = hours_change / plan.weekly_hours_available
            weekly_hour_impact = [week.allocated_hours * ratio for week in plan.weeks]

    return SimulationResult(
        projected_risk_change=projected,
        weekly_hour_impact=weekly_hour_impact,
        recommendations=recommendations,
    )
