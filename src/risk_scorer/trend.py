# ABOUTME: Detects whether a student's recent assessment performance is moving up or down.
# ABOUTME: Compares the last-30-day mean fraction correct against the all-time mean.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pandas as pd

RECENT_WINDOW_DAYS = 30
TREND_MARGIN = 0.05
MIN_ASSESSMENTS_FOR_TREND = 2


@dataclass(frozen=True)
class TrendResult:
    direction: str
    recent_performance: Optional[float]
    overall_performance: Optional[float] = None


UNKNOWN_TREND = TrendResult(direction="unknown", recent_performance=None)


def analyze_trend(assessments_df: pd.DataFrame, reference_time: datetime) -> TrendResult:
    """
    Classify the performance trend from an assessment frame.

    The recent mean only averages assessments that carry a fraction correct,
    while the all-time mean divides the zero-filled sum by every assessment.
    The two denominators are kept distinct.
    """

    if assessments_df is None or len(assessments_df) < MIN_ASSESSMENTS_FOR_TREND:
        return UNKNOWN_TREND

    reference = pd.Timestamp(reference_time)
    reference = reference.tz_localize("UTC") if reference.tzinfo is None else reference.tz_convert("UTC")
    window_start = reference - pd.Timedelta(days=RECENT_WINDOW_DAYS)

    recent = assessments_df[assessments_df["date_taken"] >= window_start]
    if recent.empty:
        return UNKNOWN_TREND

    recent_scores = recent["fraction_correct"].dropna()
    if recent_scores.empty:
        return UNKNOWN_TREND

    recent_performance = float(recent_scores.mean())
    overall_performance = float(assessments_df["fraction_correct"].fillna(0.0).sum()) / len(assessments_df)

    difference = recent_performance - overall_performance
    if difference > TREND_MARGIN:
        direction = "improving"
    elif difference < -TREND_MARGIN:
        direction = "declining"
    else:
        direction = "stable"

    return TrendResult(
        direction=direction,
        recent_performance=recent_performance,
        overall_performance=overall_performance,
    )
