# ABOUTME: Slices a student's append-only risk history into a chartable timeline.
# ABOUTME: Filters by date window and limit, and flattens entries into a DataFrame.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

import pandas as pd

from src.common.errors import InvalidInput
from src.common.schemas import ERROR_CATEGORIES, RiskHistoryEntry, as_utc

TIMELINE_COLUMNS = [
    "student_id",
    "recorded_at",
    "overall_risk_score",
    "risk_tier",
    "total_errors_analyzed",
    *[f"{category}_count" for category in ERROR_CATEGORIES],
]


def filter_risk_timeline(
    history: Iterable[RiskHistoryEntry],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[RiskHistoryEntry]:
    """Entries recorded within [start, end], oldest first, truncated to limit."""

    if limit is not None and limit < 0:
        raise InvalidInput("limit must be non-negative")
    start = as_utc(start) if start is not None else None
    end = as_utc(end) if end is not None else None

    entries = sorted(history, key=lambda e: as_utc(e.recorded_at))
    if start is not None:
        entries = [e for e in entries if as_utc(e.recorded_at) >= start]
    if end is not None:
        entries = [e for e in entries if as_utc(e.recorded_at) <= end]
    if limit is not None:
        entries = entries[:limit]
    return entries


def timeline_to_frame(entries: Iterable[RiskHistoryEntry]) -> pd.DataFrame:
    rows = []
    for entry in entries:
        row = {
            "student_id": entry.student_id,
            "recorded_at": as_utc(entry.recorded_at),
            "overall_risk_score": float(entry.overall_risk_score),
            "risk_tier": entry.risk_tier,
            "total_errors_analyzed": int(entry.total_errors_analyzed),
        }
        for category in ERROR_CATEGORIES:
            row[f"{category}_count"] = int(entry.error_counts.get(category, 0))
        rows.append(row)

    if not rows:
        return pd.DataFrame(columns=TIMELINE_COLUMNS)
    df = pd.DataFrame(rows, columns=TIMELINE_COLUMNS)
    df["recorded_at"] = pd.to_datetime(df["recorded_at"], utc=True)
    return df
