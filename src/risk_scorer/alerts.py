# ABOUTME: Raises advisor alerts from a freshly calculated risk profile.
# ABOUTME: Covers threshold breaches, tier escalation, performance decline, and error patterns.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from src.common.schemas import ERROR_CATEGORIES, RISK_TIERS, RiskProfile

ACTIVE_ALERT_STATUSES = ("unread", "read", "acknowledged")

ERROR_CATEGORY_LABELS = {
    "knowledge_deficit": "Knowledge Deficits",
    "misread": "Misreading/Misinterpretation",
    "premature_closure": "Premature Closure",
    "time_management": "Time Management",
    "strategy_error": "Strategy Errors",
}


class AlertThresholds:
    CRITICAL_RISK_SCORE = 75.0
    HIGH_RISK_SCORE = 50.0
    ERROR_PATTERN_COUNT = 5
    ERROR_PATTERN_SHARE_PCT = 30


@dataclass
class RiskAlert:
    student_id: str
    alert_type: str
    severity: str
    title: str
    message: str
    evidence: Dict = field(default_factory=dict)
    status: str = "unread"

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_ALERT_STATUSES


def _has_active(active_alerts: Iterable[RiskAlert], alert_type: str, **evidence) -> bool:
    for alert in active_alerts:
        if alert.alert_type != alert_type or not alert.is_active:
            continue
        if "severity" in evidence and alert.severity != evidence["severity"]:
            continue
        if "error_type" in evidence and alert.evidence.get("error_type") != evidence["error_type"]:
            continue
        return True
    return False


def severity_for_tier(tier: str) -> str:
    if tier == "critical":
        return "critical"
    if tier == "high":
        return "warning"
    return "info"


def check_risk_thresholds(
    profile: RiskProfile,
    active_alerts: List[RiskAlert],
    thresholds=AlertThresholds,
) -> Optional[RiskAlert]:
    score = profile.overall_risk_score
    rounded = round(score)
    if score >= thresholds.CRITICAL_RISK_SCORE and profile.risk_tier == "critical":
        if _has_active(active_alerts, "risk_threshold_exceeded", severity="critical"):
            return None
        return RiskAlert(
            student_id=profile.student_id,
            alert_type="risk_threshold_exceeded",
            severity="critical",
            title="Critical Risk Alert",
            message=(
                f"This student has reached a CRITICAL risk level with a score of {rounded}/100. "
                "Immediate intervention is strongly recommended. Please schedule a meeting and "
                "create an action plan as soon as possible."
            ),
            evidence={"score": score, "threshold": thresholds.CRITICAL_RISK_SCORE, "level": profile.risk_tier},
        )
    if score >= thresholds.HIGH_RISK_SCORE and profile.risk_tier == "high":
        if _has_active(active_alerts, "risk_threshold_exceeded", severity="warning"):
            return None
        return RiskAlert(
            student_id=profile.student_id,
            alert_type="risk_threshold_exceeded",
            severity="warning",
            title="High Risk Alert",
            message=(
                f"This student has reached a HIGH risk level with a score of {rounded}/100. "
                "Consider scheduling an intervention to address their performance patterns "
                "and provide additional support."
            ),
            evidence={"score": score, "threshold": thresholds.HIGH_RISK_SCORE, "level": profile.risk_tier},
        )
    return None


def check_risk_level_change(profile: RiskProfile, previous_tier: Optional[str]) -> Optional[RiskAlert]:
    """Alert only when the tier moved up."""
    if previous_tier is None or previous_tier not in RISK_TIERS:
        return None
    if RISK_TIERS.index(profile.risk_tier) <= RISK_TIERS.index(previous_tier):
        return None
    return RiskAlert(
        student_id=profile.student_id,
        alert_type="risk_level_change",
        severity=severity_for_tier(profile.risk_tier),
        title=f"Risk Level Elevated: {previous_tier.upper()} -> {profile.risk_tier.upper()}",
        message=(
            f"This student's risk level has increased from {previous_tier} to {profile.risk_tier}. "
            f"Current risk score: {round(profile.overall_risk_score)}. Review their recent assessments "
            "and consider scheduling an intervention."
        ),
        evidence={"from": previous_tier, "to": profile.risk_tier, "score": profile.overall_risk_score},
    )


def check_performance_decline(profile: RiskProfile, active_alerts: List[RiskAlert]) -> Optional[RiskAlert]:
    if profile.trend_direction != "declining" or profile.recent_performance is None:
        return None
    if _has_active(active_alerts, "performance_decline"):
        return None
    pct = round(profile.recent_performance * 100)
    return RiskAlert(
        student_id=profile.student_id,
        alert_type="performance_decline",
        severity="warning",
        title="Performance Decline Detected",
        message=(
            f"This student's recent performance shows a declining trend ({pct}% correct). "
            f"Based on {profile.total_errors_analyzed} analyzed errors, their performance has decreased "
            "compared to their historical average. Early intervention could help reverse this trend."
        ),
        evidence={"recent_performance_pct": pct, "total_errors": profile.total_errors_analyzed},
    )


def check_error_patterns(
    profile: RiskProfile,
    active_alerts: List[RiskAlert],
    thresholds=AlertThresholds,
) -> List[RiskAlert]:
    alerts: List[RiskAlert] = []
    total = profile.total_errors_analyzed
    for category in ERROR_CATEGORIES:
        count = profile.error_count(category)
        if count < thresholds.ERROR_PATTERN_COUNT:
            continue
        share_pct = round(count / total * 100) if total > 0 else 0
        if share_pct < thresholds.ERROR_PATTERN_SHARE_PCT:
            continue
        if _has_active(active_alerts, "error_pattern_detected", error_type=category):
            continue
        label = ERROR_CATEGORY_LABELS[category]
        alerts.append(
            RiskAlert(
                student_id=profile.student_id,
                alert_type="error_pattern_detected",
                severity="info",
                title=f"Error Pattern Detected: {label}",
                message=(
                    f"This student has a high concentration of {label.lower()} errors "
                    f"({count} errors, {share_pct}% of total). This pattern suggests a specific area "
                    "that could benefit from targeted intervention and skill development."
                ),
                evidence={"error_type": category, "count": count, "percentage": share_pct, "total_errors": total},
            )
        )
    return alerts


def evaluate_alert_triggers(
    profile: RiskProfile,
    previous_tier: Optional[str] = None,
    active_alerts: Optional[List[RiskAlert]] = None,
    thresholds=AlertThresholds,
) -> List[RiskAlert]:
    """
    Run every trigger against a new profile and return alerts to create.

    Args:
        profile: Freshly calculated risk profile
        previous_tier: Tier of the profile it replaces, if any
        active_alerts: Alerts already on record for the student, used for de-duplication
        thresholds: Score and pattern cut-offs

    Returns:
        New alerts, possibly empty
    """
    active_alerts = list(active_alerts or [])
    alerts: List[RiskAlert] = []
    for alert in (
        check_risk_thresholds(profile, active_alerts, thresholds),
        check_risk_level_change(profile, previous_tier),
        check_performance_decline(profile, active_alerts),
    ):
        if alert:
            alerts.append(alert)
    alerts.extend(check_error_patterns(profile, active_alerts, thresholds))
    return alerts
