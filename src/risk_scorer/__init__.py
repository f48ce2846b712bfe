# ABOUTME: Groups the risk scoring engine for student assessment histories.
# ABOUTME: Re-exports the scorer, trend, alerts, overrides, advisor actions, timeline, and cohort helpers.

from .scoring import calculate_risk_profile, determine_risk_tier, explain_risk_score, build_history_entry
from .overrides import RiskOverride, active_risk_override, effective_risk_tier
from .actions import generate_top_actions
from .trend import analyze_trend
from .alerts import RiskAlert, evaluate_alert_triggers
from .timeline import filter_risk_timeline, timeline_to_frame
from .cohort import summarize_cohort_risk, compare_clerkships

__all__ = [
    "calculate_risk_profile",
    "determine_risk_tier",
    "explain_risk_score",
    "build_history_entry",
    "analyze_trend",
    "RiskAlert",
    "evaluate_alert_triggers",
    "filter_risk_timeline",
    "timeline_to_frame",
    "summarize_cohort_risk",
    "compare_clerkships",
    "RiskOverride",
    "active_risk_override",
    "effective_risk_tier",
    "generate_top_actions",
]
