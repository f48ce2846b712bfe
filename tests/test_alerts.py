# ABOUTME: Tests advisor alert triggers raised after a risk recalculation.
# ABOUTME: Covers thresholds, tier escalation, declines, error patterns, and de-duplication.

from datetime import datetime, timezone

from src.common.schemas import ERROR_CATEGORIES, RiskProfile
from src.risk_scorer.alerts import RiskAlert, evaluate_alert_triggers


def _profile(score, tier, trend="stable", recent=0.7, counts=None):
    error_counts = {category: 0 for category in ERROR_CATEGORIES}
    error_counts.update(counts or {})
    return RiskProfile(
        student_id="s1",
        overall_risk_score=score,
        risk_tier=tier,
        error_counts=error_counts,
        system_weaknesses={},
        trend_direction=trend,
        recent_performance=recent,
        total_errors_analyzed=sum(error_counts.values()),
        last_calculated_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )


def _types(alerts):
    return [(a.alert_type, a.severity) for a in alerts]


def test_critical_score_raises_critical_threshold_alert():
    alerts = evaluate_alert_triggers(_profile(80.0, "critical"))
    assert _types(alerts) == [("risk_threshold_exceeded", "critical")]
    assert "80/100" in alerts[0].message


def test_high_score_raises_warning_threshold_alert():
    alerts = evaluate_alert_triggers(_profile(55.0, "high"))
    assert _types(alerts) == [("risk_threshold_exceeded", "warning")]


def test_threshold_alert_requires_matching_tier():
    # custom institution thresholds can leave a score of 80 in the high tier
    alerts = evaluate_alert_triggers(_profile(80.0, "high"))
    assert _types(alerts) == [("risk_threshold_exceeded", "warning")]
    assert evaluate_alert_triggers(_profile(30.0, "high")) == []


def test_active_alert_suppresses_duplicate_but_dismissed_does_not():
    existing = RiskAlert("s1", "risk_threshold_exceeded", "critical", "t", "m")
    assert evaluate_alert_triggers(_profile(80.0, "critical"), active_alerts=[existing]) == []

    existing.status = "dismissed"
    alerts = evaluate_alert_triggers(_profile(80.0, "critical"), active_alerts=[existing])
    assert _types(alerts) == [("risk_threshold_exceeded", "critical")]


def test_tier_escalation_alerts_only_upwards():
    up = evaluate_alert_triggers(_profile(40.0, "medium"), previous_tier="low")
    assert _types(up) == [("risk_level_change", "info")]
    assert up[0].title == "Risk Level Elevated: LOW -> MEDIUM"

    assert evaluate_alert_triggers(_profile(10.0, "low"), previous_tier="medium") == []
    assert evaluate_alert_triggers(_profile(40.0, "medium"), previous_tier="medium") == []


def test_escalation_into_high_is_warning():
    alerts = evaluate_alert_triggers(_profile(55.0, "high"), previous_tier="medium")
    assert ("risk_level_change", "warning") in _types(alerts)


def test_declining_trend_raises_performance_alert():
    alerts = evaluate_alert_triggers(_profile(20.0, "low", trend="declining", recent=0.45))
    assert _types(alerts) == [("performance_decline", "warning")]
    assert alerts[0].evidence["recent_performance_pct"] == 45


def test_declining_without_recent_performance_is_silent():
    assert evaluate_alert_triggers(_profile(20.0, "low", trend="declining", recent=None)) == []


def test_error_pattern_needs_count_and_share():
    profile = _profile(20.0, "low", counts={"misread": 6, "knowledge_deficit": 14})
    alerts = evaluate_alert_triggers(profile)

    # misread is 6/20 = 30%, knowledge deficits 70%
    assert [a.evidence["error_type"] for a in alerts] == ["knowledge_deficit", "misread"]
    assert all(a.severity == "info" for a in alerts)


def test_error_pattern_below_share_is_ignored():
    profile = _profile(20.0, "low", counts={"misread": 5, "knowledge_deficit": 20})
    alerts = evaluate_alert_triggers(profile)
    assert [a.evidence["error_type"] for a in alerts] == ["knowledge_deficit"]


def test_error_pattern_deduplicates_per_category():
    profile = _profile(20.0, "low", counts={"misread": 6, "knowledge_deficit": 14})
    existing = RiskAlert("s1", "error_pattern_detected", "info", "t", "m", evidence={"error_type": "misread"})
    alerts = evaluate_alert_triggers(profile, active_alerts=[existing])
    assert [a.evidence["error_type"] for a in alerts] == ["knowledge_deficit"]
