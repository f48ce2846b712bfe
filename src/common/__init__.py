# ABOUTME: Shared records, errors, settings, and access policy used by both engines.
# ABOUTME: Re-exports them so callers can import from src.common directly.

from .schemas import (
    AssessmentRecord,
    ErrorEvent,
    RiskHistoryEntry,
    RiskProfile,
    Student,
    StudyPlan,
    StudyPlanWeek,
    UpcomingExam,
)
from .errors import RiskEngineError, InvalidInput, NotFound, PermissionDenied
from .settings import InstitutionSettings, RiskThresholds, load_institution_settings, load_settings_by_institution
from .policy import Principal, authorize

__all__ = [
    "AssessmentRecord",
    "ErrorEvent",
    "RiskHistoryEntry",
    "RiskProfile",
    "Student",
    "StudyPlan",
    "StudyPlanWeek",
    "UpcomingExam",
    "RiskEngineError",
    "InvalidInput",
    "NotFound",
    "PermissionDenied",
    "InstitutionSettings",
    "RiskThresholds",
    "load_institution_settings",
    "load_settings_by_institution",
    "Principal",
    "authorize",
]
