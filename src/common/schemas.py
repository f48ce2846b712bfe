# ABOUTME: Defines canonical record types shared by the risk scorer and plan allocator.
# ABOUTME: Centralizes vocabularies, assessment, risk profile, exam, and study plan schemas.

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

ASSESSMENT_KINDS = ("practice_exam", "shelf_exam", "internal_predictor", "question_block", "custom")
ERROR_CATEGORIES = ("knowledge_deficit", "misread", "premature_closure", "time_management", "strategy_error")
MEDICAL_SYSTEMS = (
    "cardiovascular",
    "pulmonary",
    "renal",
    "gastrointestinal",
    "endocrine",
    "neurology",
    "psychiatry",
    "musculoskeletal",
    "dermatology",
    "reproductive",
    "hematology",
    "immunology",
    "general",
)
RISK_TIERS = ("low", "medium", "high", "critical")
TREND_DIRECTIONS = ("improving", "stable", "declining", "unknown")
PLAN_STATUSES = ("draft", "active", "completed", "archived")
ROLES = ("student", "advisor", "admin")


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _serialize(value):
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if isinstance(value, tuple):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _RecordMixin:
    def to_dict(self) -> Dict:
        """JSON-ready mapping mirroring the record field-for-field."""
        return {f.name: _serialize(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class ErrorEvent(_RecordMixin):
    """One tagged mistake within an assessment."""

    category: str
    system: str
    topic: Optional[str] = None
    question_ref: Optional[str] = None
    reflection: Optional[str] = None


@dataclass(frozen=True)
class AssessmentRecord(_RecordMixin):
    """A completed exam or question-block attempt with its error events."""

    assessment_id: str
    student_id: str
    kind: str
    date_taken: datetime
    name: str = ""
    score: Optional[float] = None
    fraction_correct: Optional[float] = None
    question_count: Optional[int] = None
    notes: Optional[str] = None
    errors: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "date_taken", as_utc(self.date_taken))


@dataclass(frozen=True)
class Student(_RecordMixin):
    student_id: str
    institution_id: str
    user_id: Optional[str] = None
    full_name: str = ""
    class_year: Optional[int] = None
    current_clerkship: Optional[str] = None
    has_accommodations: bool = False


@dataclass(frozen=True)
class UpcomingExam(_RecordMixin):
    """Scheduled exam consumed by the plan allocator; outcome stays None while pending."""

    exam_id: str
    student_id: str
    name: str
    scheduled_date: datetime
    content_weight: float = 1.0
    exam_type_code: Optional[str] = None
    outcome: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "scheduled_date", as_utc(self.scheduled_date))

    @property
    def is_pending(self) -> bool:
        return self.outcome is None


@dataclass(frozen=True)
class RiskProfile(_RecordMixin):
    """Derived risk snapshot for one student."""

    student_id: str
    overall_risk_score: float
    risk_tier: str
    error_counts: Mapping[str, int]
    system_weaknesses: Mapping[str, int]
    trend_direction: str
    recent_performance: Optional[float]
    total_errors_analyzed: int
    last_calculated_at: datetime

    def __post_init__(self):
        object.__setattr__(self, "last_calculated_at", as_utc(self.last_calculated_at))

    def error_count(self, category: str) -> int:
        return int(self.error_counts.get(category, 0))


@dataclass(frozen=True)
class RiskHistoryEntry(_RecordMixin):
    """Append-only timeline row recorded on every recalculation."""

    student_id: str
    overall_risk_score: float
    risk_tier: str
    error_counts: Mapping[str, int]
    total_errors_analyzed: int
    recorded_at: datetime

    def __post_init__(self):
        object.__setattr__(self, "recorded_at", as_utc(self.recorded_at))


@dataclass
class StudyPlanWeek(_RecordMixin):
    week_number: int
    allocated_hours: float
    target_questions: int
    focus_systems: List[str]
    focus_error_categories: List[str]
    recommendation: str
    exam_id: Optional[str] = None
    focus_topics: List[str] = field(default_factory=list)
    completed_hours: float = 0.0
    completed_questions: int = 0
    is_completed: bool = False


@dataclass
class StudyPlan(_RecordMixin):
    plan_id: str
    student_id: str
    title: str
    status: str
    weekly_hours_available: float
    daily_hours_cap: float
    start_date: datetime
    end_date: datetime
    weeks: List[StudyPlanWeek]
    exam_allocations: List[Dict] = field(default_factory=list)
    created_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def week(self, week_number: int) -> Optional[StudyPlanWeek]:
        for item in self.weeks:
            if item.week_number == week_number:
                return item
        return None
