# ABOUTME: Summarizes risk across a cohort of students for institution dashboards.
# ABOUTME: Builds tier distributions, averages, and per-clerkship comparisons with pandas.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from src.common.schemas import ERROR_CATEGORIES, RISK_TIERS, RiskProfile, Student, UpcomingExam, as_utc, utcnow

COHORT_COLUMNS = [
    "student_id",
    "class_year",
    "current_clerkship",
    "overall_risk_score",
    "risk_tier",
    *[f"{category}_count" for category in ERROR_CATEGORIES],
]


@dataclass
class TierShare:
    risk_tier: str
    count: int
    percentage: float


@dataclass
class CohortRiskSummary:
    total_students: int
    distribution: List[TierShare]
    average_risk_score: float
    filters: Dict = field(default_factory=dict)


@dataclass
class ClerkshipStats:
    clerkship_name: str
    student_count: int
    average_risk_score: float
    risk_distribution: Dict[str, int]
    top_error_type: Optional[str]


def build_cohort_frame(students: Iterable[Student], profiles: Mapping[str, RiskProfile]) -> pd.DataFrame:
    """
    One row per student that already has a risk profile.
    """

    rows = []
    for student in students:
        profile = profiles.get(student.student_id)
        if profile is None:
            continue
        row = {
            "student_id": student.student_id,
            "class_year": student.class_year,
            "current_clerkship": student.current_clerkship,
            "overall_risk_score": float(profile.overall_risk_score),
            "risk_tier": profile.risk_tier,
        }
        for category in ERROR_CATEGORIES:
            row[f"{category}_count"] = profile.error_count(category)
        rows.append(row)
    return pd.DataFrame(rows, columns=COHORT_COLUMNS)


def _students_with_matching_exams(
    exams: Iterable[UpcomingExam],
    exam_type_code: Optional[str],
    weeks_to_exam: Optional[int],
    reference_time: datetime,
) -> set:
    window_end = reference_time + timedelta(weeks=weeks_to_exam) if weeks_to_exam is not None else None
    matched = set()
    for exam in exams:
        if not exam.is_pending:
            continue
        if exam_type_code and exam.exam_type_code != exam_type_code:
            continue
        if window_end is not None:
            scheduled = as_utc(exam.scheduled_date)
            if scheduled < reference_time or scheduled > window_end:
                continue
        matched.add(exam.student_id)
    return matched


def summarize_cohort_risk(
    students: Iterable[Student],
    profiles: Mapping[str, RiskProfile],
    exams: Iterable[UpcomingExam] = (),
    class_year: Optional[int] = None,
    exam_type_code: Optional[str] = None,
    weeks_to_exam: Optional[int] = None,
    reference_time: Optional[datetime] = None,
) -> CohortRiskSummary:
    """
    Tier distribution and average risk for students matching the filters.

    Exam filters only consider pending exams; weeks_to_exam keeps students with
    an exam between now and now + N weeks.
    """

    filters = {"class_year": class_year, "exam_type_code": exam_type_code, "weeks_to_exam": weeks_to_exam}
    reference_time = as_utc(reference_time) if reference_time is not None else utcnow()
    empty = CohortRiskSummary(total_students=0, distribution=[], average_risk_score=0.0, filters=filters)

    students = list(students)
    if class_year is not None:
        students = [s for s in students if s.class_year == class_year]
    if exam_type_code or weeks_to_exam is not None:
        allowed = _students_with_matching_exams(exams, exam_type_code, weeks_to_exam, reference_time)
        students = [s for s in students if s.student_id in allowed]

    df = build_cohort_frame(students, profiles)
    if df.empty:
        return empty

    total = len(df)
    counts = df["risk_tier"].value_counts()
    distribution = [
        TierShare(
            risk_tier=tier,
            count=int(counts.get(tier, 0)),
            percentage=float(counts.get(tier, 0)) / total * 100.0,
        )
        for tier in RISK_TIERS
    ]
    return CohortRiskSummary(
        total_students=total,
        distribution=distribution,
        average_risk_score=float(df["overall_risk_score"].mean()),
        filters=filters,
    )


def compare_clerkships(students: Iterable[Student], profiles: Mapping[str, RiskProfile]) -> List[ClerkshipStats]:
    """
    Per-clerkship risk statistics, highest average risk first.
    """

    df = build_cohort_frame(students, profiles)
    df = df.dropna(subset=["current_clerkship"])
    if df.empty:
        return []

    count_columns = [f"{category}_count" for category in ERROR_CATEGORIES]
    stats: List[ClerkshipStats] = []
    for clerkship, group in df.groupby("current_clerkship", sort=False):
        tier_counts = group["risk_tier"].value_counts()
        error_totals = group[count_columns].sum()
        top_error_type = None
        if error_totals.max() > 0:
            top_error_type = str(error_totals.idxmax()).removesuffix("_count")
        stats.append(
            ClerkshipStats(
                clerkship_name=str(clerkship),
                student_count=int(len(group)),
                average_risk_score=float(group["overall_risk_score"].mean()),
                risk_distribution={tier: int(tier_counts.get(tier, 0)) for tier in RISK_TIERS},
                top_error_type=top_error_type,
            )
        )
    stats.sort(key=lambda s: s.average_risk_score, reverse=True)
    return stats
