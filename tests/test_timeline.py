# ABOUTME: Tests risk timeline filtering and DataFrame export.
# ABOUTME: Ensures ordering, inclusive date bounds, and limits behave.

from datetime import datetime, timezone

import pytest

from src.common.errors import InvalidInput
from src.common.schemas import RiskHistoryEntry
from src.risk_scorer.timeline import TIMELINE_COLUMNS, filter_risk_timeline, timeline_to_frame


def _entry(day, score):
    return RiskHistoryEntry(
        student_id="s1",
        overall_risk_score=score,
        risk_tier="medium",
        error_counts={"misread": 2},
        total_errors_analyzed=2,
        recorded_at=datetime(2024, 5, day, tzinfo=timezone.utc),
    )


HISTORY = [_entry(20, 45.0), _entry(1, 30.0), _entry(10, 40.0)]


def test_entries_are_returned_oldest_first():
    assert [e.overall_risk_score for e in filter_risk_timeline(HISTORY)] == [30.0, 40.0, 45.0]


def test_date_bounds_are_inclusive():
    entries = filter_risk_timeline(
        HISTORY,
        start=datetime(2024, 5, 10, tzinfo=timezone.utc),
        end=datetime(2024, 5, 20, tzinfo=timezone.utc),
    )
    assert [e.overall_risk_score for e in entries] == [40.0, 45.0]


def test_naive_bounds_are_utc():
    entries = filter_risk_timeline(HISTORY, end=datetime(2024, 5, 1))
    assert [e.overall_risk_score for e in entries] == [30.0]


def test_limit_truncates_and_rejects_negative():
    assert len(filter_risk_timeline(HISTORY, limit=2)) == 2
    assert filter_risk_timeline(HISTORY, limit=0) == []
    with pytest.raises(InvalidInput):
        filter_risk_timeline(HISTORY, limit=-1)


def test_timeline_frame_flattens_counts():
    df = timeline_to_frame(filter_risk_timeline(HISTORY))
    assert list(df.columns) == TIMELINE_COLUMNS
    assert list(df["overall_risk_score"]) == [30.0, 40.0, 45.0]
    assert list(df["misread_count"]) == [2, 2, 2]
    assert list(df["knowledge_deficit_count"]) == [0, 0, 0]


def test_empty_timeline_frame_keeps_columns():
    df = timeline_to_frame([])
    assert df.empty
    assert list(df.columns) == TIMELINE_COLUMNS
