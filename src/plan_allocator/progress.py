# ABOUTME: Moves study plans through their lifecycle and records weekly progress.
# ABOUTME: Enforces draft/active/completed/archived transitions and progress bounds.

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from src.common.errors import InvalidInput, InvalidStatusTransition, StudyPlanWeekNotFound
from src.common.schemas import PLAN_STATUSES, StudyPlan, StudyPlanWeek, as_utc, utcnow

ALLOWED_TRANSITIONS = {
    "draft": {"active"},
    "active": {"draft", "completed", "archived"},
    "completed": set(),
    "archived": set(),
}


def transition_plan_status(plan: StudyPlan, new_status: str, at: Optional[datetime] = None) -> StudyPlan:
    """
    Change the plan status in place.

    Only draft<->active is reversible; completed and archived are terminal.
    """
    if new_status not in PLAN_STATUSES:
        raise InvalidInput(f"Unknown plan status '{new_status}'")
    if new_status == plan.status:
        return plan
    if new_status not in ALLOWED_TRANSITIONS[plan.status]:
        raise InvalidStatusTransition(f"Cannot move plan {plan.plan_id} from {plan.status} to {new_status}")

    at = as_utc(at) if at is not None else utcnow()
    plan.status = new_status
    if new_status == "active":
        plan.activated_at = at
    elif new_status == "completed":
        plan.completed_at = at
    return plan


def update_week_progress(
    plan: StudyPlan,
    week_number: int,
    completed_hours: Optional[float] = None,
    completed_questions: Optional[int] = None,
    is_completed: Optional[bool] = None,
) -> StudyPlanWeek:
    week = plan.week(week_number)
    if week is None:
        raise StudyPlanWeekNotFound(f"Plan {plan.plan_id} has no week {week_number}")

    if completed_hours is not None:
        if completed_hours < 0:
            raise InvalidInput("completed_hours must be non-negative")
        week.completed_hours = float(completed_hours)
    if completed_questions is not None:
        if completed_questions < 0:
            raise InvalidInput("completed_questions must be non-negative")
        week.completed_questions = int(completed_questions)
    if is_completed is not None:
        week.is_completed = bool(is_completed)
    return week


def update_plan_settings(
    plan: StudyPlan,
    weekly_hours_available: Optional[float] = None,
    daily_hours_cap: Optional[float] = None,
    title: Optional[str] = None,
) -> StudyPlan:
    """Edit stored settings; existing weeks are not regenerated."""
    if weekly_hours_available is not None:
        if weekly_hours_available <= 0:
            raise InvalidInput("weekly_hours_available must be greater than 0")
        plan.weekly_hours_available = float(weekly_hours_available)
    if daily_hours_cap is not None:
        if daily_hours_cap <= 0:
            raise InvalidInput("daily_hours_cap must be greater than 0")
        plan.daily_hours_cap = float(daily_hours_cap)
    if title is not None:
        plan.title = title
    return plan


def summarize_plan_progress(plan: StudyPlan) -> Dict[str, float]:
    allocated_hours = sum(w.allocated_hours for w in plan.weeks)
    completed_hours = sum(w.completed_hours for w in plan.weeks)
    completed_weeks = sum(1 for w in plan.weeks if w.is_completed)
    return {
        "total_weeks": len(plan.weeks),
        "completed_weeks": completed_weeks,
        "allocated_hours": allocated_hours,
        "completed_hours": completed_hours,
        "target_questions": sum(w.target_questions for w in plan.weeks),
        "completed_questions": sum(w.completed_questions for w in plan.weeks),
        "completion_pct": (completed_hours / allocated_hours * 100.0) if allocated_hours > 0 else 0.0,
    }
