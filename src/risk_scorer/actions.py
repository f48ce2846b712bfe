# ABOUTME: Suggests up to three next steps for an advisor from a student's risk profile.
# ABOUTME: Draws on the dominant error category, the next exam, and study plan status.

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from src.common.schemas import ERROR_CATEGORIES, RiskProfile, UpcomingExam, as_utc, utcnow

MAX_ACTIONS = 3
EXAM_HORIZON_WEEKS = 4

ERROR_CATEGORY_ACTIONS = {
    "knowledge_deficit": "Schedule content review sessions for weak systems",
    "misread": "Practice question stem highlighting and key detail identification",
    "premature_closure": "Review all answer choices before selecting - practice differential reasoning",
    "time_management": "Complete timed practice blocks to build pacing skills",
    "strategy_error": "Review test-taking frameworks and elimination strategies",
}


def _next_exam(exams: Sequence[UpcomingExam], reference_time: datetime) -> Optional[UpcomingExam]:
    upcoming = [e for e in exams if e.is_pending and as_utc(e.scheduled_date) >= reference_time]
    return min(upcoming, key=lambda e: as_utc(e.scheduled_date)) if upcoming else None


def generate_top_actions(
    profile: Optional[RiskProfile],
    exams: Sequence[UpcomingExam],
    has_active_plan: bool,
    reference_time: Optional[datetime] = None,
) -> List[str]:
    """
    Build at most three advisor actions.

    Args:
        profile: Current risk profile; no profile yields no actions.
        exams: The student's exams; only pending ones from reference_time on count.
        has_active_plan: Whether the student already follows an active study plan.
        reference_time: "Now" for the exam countdown; defaults to the current UTC time.

    Returns:
        Action strings in order: error focus, exam countdown, plan or system focus.
    """

    if profile is None:
        return []
    reference_time = as_utc(reference_time) if reference_time is not None else utcnow()
    actions: List[str] = []

    # ties resolve in canonical category order
    top_category = max(ERROR_CATEGORIES, key=lambda c: (profile.error_count(c), -ERROR_CATEGORIES.index(c)))
    if profile.error_count(top_category) > 0:
        actions.append(ERROR_CATEGORY_ACTIONS[top_category])

    exam = _next_exam(exams, reference_time)
    if exam is not None:
        weeks = math.ceil((as_utc(exam.scheduled_date) - reference_time) / timedelta(weeks=1))
        if weeks <= EXAM_HORIZON_WEEKS:
            if profile.risk_tier in ("critical", "high"):
                actions.append(
                    f"URGENT: {exam.name} in {weeks} week(s) - Consider intensive tutoring or exam delay"
                )
            else:
                actions.append(f"Begin full-length practice exams for {exam.name} ({weeks} weeks away)")

    if not has_active_plan and profile.risk_tier != "low":
        actions.append("Generate personalized study plan to address weaknesses systematically")
    elif profile.system_weaknesses:
        system, count = max(profile.system_weaknesses.items(), key=lambda kv: kv[1])
        if count > 0:
            actions.append(
                f"Focus this week on {system[:1].upper() + system[1:]} - "
                "complete targeted question sets and review key concepts"
            )

    return actions[:MAX_ACTIONS]
