# ABOUTME: Flattens assessment histories into frames and aggregates tagged errors.
# ABOUTME: Produces per-category error counts and the sparse system weakness histogram.

from __future__ import annotations

from typing import Dict, Iterable, Sequence

import pandas as pd

from src.common.errors import InvalidInput
from src.common.schemas import ERROR_CATEGORIES, MEDICAL_SYSTEMS, AssessmentRecord, as_utc

ASSESSMENT_COLUMNS = ["assessment_id", "date_taken", "fraction_correct", "question_count", "error_count"]
ERROR_COLUMNS = ["assessment_id", "category", "system"]


def build_assessment_frame(assessments: Sequence[AssessmentRecord]) -> pd.DataFrame:
    """
    One row per assessment with UTC timestamps; missing numeric fields stay NaN.
    """

    if not assessments:
        return pd.DataFrame(columns=ASSESSMENT_COLUMNS)

    rows = [
        {
            "assessment_id": a.assessment_id,
            "date_taken": as_utc(a.date_taken),
            "fraction_correct": a.fraction_correct,
            "question_count": a.question_count,
            "error_count": len(a.errors),
        }
        for a in assessments
    ]
    df = pd.DataFrame(rows, columns=ASSESSMENT_COLUMNS)
    df["date_taken"] = pd.to_datetime(df["date_taken"], utc=True)
    df["fraction_correct"] = pd.to_numeric(df["fraction_correct"], errors="coerce")
    df["question_count"] = pd.to_numeric(df["question_count"], errors="coerce")
    return df


def build_error_frame(assessments: Iterable[AssessmentRecord]) -> pd.DataFrame:
    """
    Explode nested error events into one row per error, validating vocabularies.
    """

    rows = []
    for assessment in assessments:
        for error in assessment.errors:
            if error.category not in ERROR_CATEGORIES:
                raise InvalidInput(f"Unknown error category '{error.category}' in {assessment.assessment_id}")
            if error.system not in MEDICAL_SYSTEMS:
                raise InvalidInput(f"Unknown system '{error.system}' in {assessment.assessment_id}")
            rows.append(
                {
                    "assessment_id": assessment.assessment_id,
                    "category": error.category,
                    "system": error.system,
                }
            )
    return pd.DataFrame(rows, columns=ERROR_COLUMNS)


def count_error_categories(errors_df: pd.DataFrame) -> Dict[str, int]:
    """Count errors per category; every category is present, zero when unseen."""

    counts = {category: 0 for category in ERROR_CATEGORIES}
    if errors_df.empty:
        return counts
    observed = errors_df.groupby("category", sort=False).size()
    for category, count in observed.items():
        counts[category] = int(count)
    return counts


def system_weaknesses(errors_df: pd.DataFrame) -> Dict[str, int]:
    """Sparse system -> error count mapping in first-seen order."""

    if errors_df.empty:
        return {}
    observed = errors_df.groupby("system", sort=False).size()
    return {str(system): int(count) for system, count in observed.items()}


def top_weak_systems(weaknesses: Dict[str, int], limit: int = 3) -> list:
    """Systems ranked by error count; ties keep histogram order."""

    ranked = sorted(weaknesses.items(), key=lambda kv: -kv[1])
    return [system for system, count in ranked[:limit] if count > 0]


def top_error_categories(error_counts: Dict[str, int], limit: int = 2) -> list:
    """Most frequent error categories; ties follow the canonical category order."""

    ranked = sorted(ERROR_CATEGORIES, key=lambda c: -int(error_counts.get(c, 0)))
    return [c for c in ranked[:limit] if int(error_counts.get(c, 0)) > 0]
