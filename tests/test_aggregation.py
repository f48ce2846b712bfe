# ABOUTME: Tests error aggregation into category counts and system weaknesses.
# ABOUTME: Checks ranking helpers used to pick weekly focus areas.

from datetime import datetime, timezone

import pytest

from src.common.errors import InvalidInput
from src.common.schemas import AssessmentRecord, ErrorEvent
from src.risk_scorer.aggregation import (
    build_assessment_frame,
    build_error_frame,
    count_error_categories,
    system_weaknesses,
    top_error_categories,
    top_weak_systems,
)


def _assessment(aid, errors, questions=None):
    return AssessmentRecord(
        assessment_id=aid,
        student_id="s1",
        kind="shelf_exam",
        date_taken=datetime(2024, 5, 1, tzinfo=timezone.utc),
        question_count=questions,
        errors=tuple(ErrorEvent(category=c, system=s) for c, s in errors),
    )


def test_category_counts_include_every_category():
    df = build_error_frame(
        [
            _assessment("a1", [("misread", "renal"), ("misread", "pulmonary")]),
            _assessment("a2", [("time_management", "renal")]),
        ]
    )
    counts = count_error_categories(df)

    assert counts == {
        "knowledge_deficit": 0,
        "misread": 2,
        "premature_closure": 0,
        "time_management": 1,
        "strategy_error": 0,
    }


def test_system_weaknesses_are_sparse_in_first_seen_order():
    df = build_error_frame(
        [_assessment("a1", [("misread", "pulmonary"), ("misread", "renal"), ("knowledge_deficit", "pulmonary")])]
    )
    weaknesses = system_weaknesses(df)

    assert weaknesses == {"pulmonary": 2, "renal": 1}
    assert list(weaknesses) == ["pulmonary", "renal"]


def test_empty_history_aggregates_to_zero():
    df = build_error_frame([])
    assert df.empty
    assert sum(count_error_categories(df).values()) == 0
    assert system_weaknesses(df) == {}
    assert build_assessment_frame([]).empty


def test_unknown_system_is_rejected():
    with pytest.raises(InvalidInput):
        build_error_frame([_assessment("a1", [("misread", "ophthalmology")])])


def test_assessment_frame_keeps_missing_question_counts_as_nan():
    df = build_assessment_frame([_assessment("a1", [], questions=None), _assessment("a2", [], questions=30)])
    assert df["question_count"].isna().sum() == 1
    assert df["question_count"].fillna(0).sum() == 30
    assert str(df["date_taken"].dt.tz) == "UTC"


def test_top_weak_systems_ranks_by_count_with_stable_ties():
    weaknesses = {"renal": 2, "cardiovascular": 5, "pulmonary": 2, "endocrine": 1}
    assert top_weak_systems(weaknesses) == ["cardiovascular", "renal", "pulmonary"]
    assert top_weak_systems(weaknesses, limit=1) == ["cardiovascular"]
    assert top_weak_systems({}) == []


def test_top_error_categories_skip_zero_counts_and_break_ties_canonically():
    counts = {
        "knowledge_deficit": 0,
        "misread": 3,
        "premature_closure": 0,
        "time_management": 0,
        "strategy_error": 3,
    }
    assert top_error_categories(counts) == ["misread", "strategy_error"]

    counts["strategy_error"] = 0
    assert top_error_categories(counts) == ["misread"]
    assert top_error_categories({}) == []
