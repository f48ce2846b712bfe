# ABOUTME: Turns a student's assessment and error history into a 0-100 risk score and tier.
# ABOUTME: Sums five bounded terms, clamps the total, and maps it onto institution thresholds.

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Sequence

import pandas as pd

from src.common.schemas import (
    ERROR_CATEGORIES,
    AssessmentRecord,
    RiskHistoryEntry,
    RiskProfile,
    as_utc,
    utcnow,
)
from src.common.settings import RiskThresholds, validate_thresholds

from .aggregation import (
    build_assessment_frame,
    build_error_frame,
    count_error_categories,
    system_weaknesses,
)
from .trend import TrendResult, analyze_trend

ERROR_RATE_CAP = 40.0
RECENT_PERFORMANCE_WEIGHT = 30.0
DIVERSITY_WEIGHT = 15.0
CONCENTRATION_WEIGHT = 15.0
TREND_ADJUSTMENT = 10.0
COMPONENT_NAMES = ("error_rate", "recent_performance", "error_diversity", "system_concentration", "trend_adjustment")


def score_components(
    assessments_df: pd.DataFrame,
    error_counts: Dict[str, int],
    weaknesses: Dict[str, int],
    trend: TrendResult,
) -> Dict[str, float]:
    """
    Compute the five additive score terms before clamping.
    """

    total_errors = sum(error_counts.values())
    total_questions = float(assessments_df["question_count"].fillna(0).sum()) if not assessments_df.empty else 0.0

    error_rate = (total_errors / total_questions) if total_questions > 0 else 0.0
    error_rate_term = min(error_rate * 100.0, ERROR_RATE_CAP)

    recent_term = 0.0
    if trend.recent_performance is not None:
        recent_term = (1.0 - trend.recent_performance) * RECENT_PERFORMANCE_WEIGHT

    categories_seen = sum(1 for c in ERROR_CATEGORIES if error_counts.get(c, 0) > 0)
    diversity_term = (categories_seen / len(ERROR_CATEGORIES)) * DIVERSITY_WEIGHT

    max_system_errors = max(weaknesses.values(), default=0)
    concentration = (max_system_errors / total_errors) if total_errors > 0 else 0.0
    concentration_term = concentration * CONCENTRATION_WEIGHT

    if trend.direction == "improving":
        trend_term = -TREND_ADJUSTMENT
    elif trend.direction == "declining":
        trend_term = TREND_ADJUSTMENT
    else:
        trend_term = 0.0

    return {
        "error_rate": error_rate_term,
        "recent_performance": recent_term,
        "error_diversity": diversity_term,
        "system_concentration": concentration_term,
        "trend_adjustment": trend_term,
    }


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


def determine_risk_tier(score: float, thresholds: RiskThresholds) -> str:
    """
    Map a score onto four tiers with three thresholds.

    Tier names sit one level above the threshold names: reaching the high
    threshold means critical, the medium threshold means high, and the low
    threshold means medium.
    """

    if score >= thresholds.high:
        return "critical"
    if score >= thresholds.medium:
        return "high"
    if score >= thresholds.low:
        return "medium"
    return "low"


def zero_risk_profile(student_id: str, calculated_at: datetime) -> RiskProfile:
    return RiskProfile(
        student_id=student_id,
        overall_risk_score=0.0,
        risk_tier="low",
        error_counts={category: 0 for category in ERROR_CATEGORIES},
        system_weaknesses={},
        trend_direction="unknown",
        recent_performance=None,
        total_errors_analyzed=0,
        last_calculated_at=calculated_at,
    )


def calculate_risk_profile(
    student_id: str,
    assessments: Sequence[AssessmentRecord],
    thresholds: Optional[RiskThresholds] = None,
    reference_time: Optional[datetime] = None,
) -> RiskProfile:
    """
    Score a student's full assessment history.

    Args:
        student_id: Student the history belongs to
        assessments: Every assessment with its nested error events, any order
        thresholds: Institution tier thresholds (defaults 25/50/75)
        reference_time: "Now" for the 30-day trend window; defaults to current UTC

    Returns:
        RiskProfile stamped with reference_time
    """
    thresholds = thresholds or RiskThresholds()
    validate_thresholds(thresholds.low, thresholds.medium, thresholds.high)
    reference_time = as_utc(reference_time) if reference_time is not None else utcnow()

    if not assessments:
        return zero_risk_profile(student_id, reference_time)

    assessments_df = build_assessment_frame(assessments)
    errors_df = build_error_frame(assessments)
    error_counts = count_error_categories(errors_df)
    weaknesses = system_weaknesses(errors_df)
    trend = analyze_trend(assessments_df, reference_time)

    components = score_components(assessments_df, error_counts, weaknesses, trend)
    score = clamp_score(sum(components.values()))

    return RiskProfile(
        student_id=student_id,
        overall_risk_score=score,
        risk_tier=determine_risk_tier(score, thresholds),
        error_counts=error_counts,
        system_weaknesses=weaknesses,
        trend_direction=trend.direction,
        recent_performance=trend.recent_performance,
        total_errors_analyzed=int(len(errors_df)),
        last_calculated_at=reference_time,
    )


def explain_risk_score(
    assessments: Sequence[AssessmentRecord],
    reference_time: Optional[datetime] = None,
) -> Dict[str, float]:
    """Score components for display; the clamped total is under 'total'."""

    reference_time = as_utc(reference_time) if reference_time is not None else utcnow()
    if not assessments:
        components = {name: 0.0 for name in COMPONENT_NAMES}
    else:
        assessments_df = build_assessment_frame(assessments)
        errors_df = build_error_frame(assessments)
        components = score_components(
            assessments_df,
            count_error_categories(errors_df),
            system_weaknesses(errors_df),
            analyze_trend(assessments_df, reference_time),
        )
    components["total"] = clamp_score(sum(components.values()))
    return components


def build_history_entry(profile: RiskProfile, recorded_at: Optional[datetime] = None) -> RiskHistoryEntry:
    return RiskHistoryEntry(
        student_id=profile.student_id,
        overall_risk_score=profile.overall_risk_score,
        risk_tier=profile.risk_tier,
        error_counts=dict(profile.error_counts),
        total_errors_analyzed=profile.total_errors_analyzed,
        recorded_at=as_utc(recorded_at) if recorded_at is not None else profile.last_calculated_at,
    )
