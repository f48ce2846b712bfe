# ABOUTME: Groups the study plan allocation engine.
# ABOUTME: Re-exports plan generation, what-if simulation, and lifecycle helpers.

from .generator import generate_study_plan
from .simulation import ExamDateChange, SimulationResult, simulate_plan_adjustment
from .progress import transition_plan_status, update_week_progress, update_plan_settings, summarize_plan_progress

__all__ = [
    "generate_study_plan",
    "ExamDateChange",
    "SimulationResult",
    "simulate_plan_adjustment",
    "transition_plan_status",
    "update_week_progress",
    "update_plan_settings",
    "summarize_plan_progress",
]
