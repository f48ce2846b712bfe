# ABOUTME: Composes the weekly recommendation text shown on each study plan week.
# ABOUTME: Combines exam proximity, focus systems, error-category advice, and risk tier.

from __future__ import annotations

from typing import List, Optional, Sequence

from .allocation import QUESTIONS_PER_HOUR, ExamAllocation

URGENT_WEEKS = 2

ERROR_CATEGORY_ADVICE = {
    "knowledge_deficit": (
        "**Knowledge Gaps**: Review foundational concepts and create summary sheets for weak topics."
    ),
    "misread": (
        "**Reading Accuracy**: Practice highlighting key details in question stems. "
        "Slow down and identify critical information."
    ),
    "premature_closure": (
        "**Critical Thinking**: Review all answer choices before selecting. "
        "Practice differential diagnosis reasoning."
    ),
    "time_management": (
        "**Time Management**: Practice timed blocks. "
        f"Aim for {round(60 / QUESTIONS_PER_HOUR)} minutes per question on average."
    ),
    "strategy_error": (
        "**Test Strategy**: Review question-solving frameworks. "
        "Practice eliminating obviously wrong answers first."
    ),
}

HIGH_RISK_ADVICE = (
    "**High Priority**: Consider scheduling office hours or tutoring sessions this week for additional support."
)


def exam_guidance(exam: ExamAllocation) -> str:
    if exam.weeks_until_exam <= URGENT_WEEKS:
        return (
            f"**Exam Approaching**: {exam.exam_name} is in {exam.weeks_until_exam} week(s). "
            "Focus on high-yield topics and practice full-length exams."
        )
    return (
        f"**Preparing for**: {exam.exam_name} ({exam.weeks_until_exam} weeks away). "
        "Build strong fundamentals in weak areas."
    )


def format_system_name(system: str) -> str:
    return system[:1].upper() + system[1:]


def build_weekly_recommendation(
    exam: Optional[ExamAllocation],
    focus_systems: Sequence[str],
    focus_error_categories: Sequence[str],
    risk_tier: str,
) -> str:
    """
    Deterministic paragraph list joined by blank lines.
    """

    parts: List[str] = []
    if exam is not None:
        parts.append(exam_guidance(exam))

    if focus_systems:
        names = ", ".join(format_system_name(s) for s in focus_systems)
        parts.append(f"**Focus Systems**: {names}. Complete targeted question sets and review key concepts.")

    # canonical order, not ranking order, so the text is stable week to week
    for category, advice in ERROR_CATEGORY_ADVICE.items():
        if category in focus_error_categories:
            parts.append(advice)

    if risk_tier in ("high", "critical"):
        parts.append(HIGH_RISK_ADVICE)

    return "\n\n".join(parts)
