# ABOUTME: Declares the persistence port used by the orchestration service.
# ABOUTME: Ships an in-memory adapter backing the CLI and the test suite.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .schemas import (
    AssessmentRecord,
    RiskHistoryEntry,
    RiskProfile,
    Student,
    StudyPlan,
    UpcomingExam,
    as_utc,
)
from .settings import InstitutionSettings


class RiskRepository(ABC):
    """Store contract for students, assessments, risk snapshots, overrides, exams, and plans."""

    @abstractmethod
    def get_student(self, student_id: str) -> Optional[Student]:
        pass

    @abstractmethod
    def list_students(self, institution_id: str) -> List[Student]:
        pass

    @abstractmethod
    def list_assessments(self, student_id: str) -> List[AssessmentRecord]:
        """Full assessment history with nested errors, newest first."""
        pass

    @abstractmethod
    def add_assessment(self, assessment: AssessmentRecord) -> None:
        pass

    @abstractmethod
    def get_risk_profile(self, student_id: str) -> Optional[RiskProfile]:
        pass

    @abstractmethod
    def upsert_risk_profile(self, profile: RiskProfile) -> None:
        pass

    @abstractmethod
    def append_risk_history(self, entry: RiskHistoryEntry) -> None:
        pass

    @abstractmethod
    def list_risk_history(self, student_id: str) -> List[RiskHistoryEntry]:
        pass

    @abstractmethod
    def list_pending_exams(self, student_id: str) -> List[UpcomingExam]:
        """Exams whose outcome is still None, soonest first."""
        pass

    @abstractmethod
    def save_study_plan(self, plan: StudyPlan) -> None:
        pass

    @abstractmethod
    def get_study_plan(self, plan_id: str) -> Optional[StudyPlan]:
        pass

    @abstractmethod
    def list_study_plans(self, student_id: str) -> List[StudyPlan]:
        pass

    @abstractmethod
    def get_institution_settings(self, institution_id: str) -> InstitutionSettings:
        """Stored settings, or defaults when the institution has none yet."""
        pass

    @abstractmethod
    def save_institution_settings(self, institution_id: str, settings: InstitutionSettings) -> None:
        pass

    @abstractmethod
    def add_alerts(self, student_id: str, alerts: Iterable) -> None:
        pass

    @abstractmethod
    def list_alerts(self, student_id: str) -> List:
        pass

    @abstractmethod
    def save_risk_override(self, override) -> None:
        pass

    @abstractmethod
    def get_risk_override(self, override_id: str):
        pass

    @abstractmethod
    def list_risk_overrides(self, student_id: str) -> List:
        """Every override ever created for the student, active or not."""
        pass


class InMemoryRepository(RiskRepository):
    """Dictionary-backed store; not safe for concurrent writers on the same student."""

    def __init__(self, default_settings: Optional[InstitutionSettings] = None) -> None:
        self.default_settings = default_settings or InstitutionSettings()
        self.students: Dict[str, Student] = {}
        self.assessments: Dict[str, List[AssessmentRecord]] = {}
        self.risk_profiles: Dict[str, RiskProfile] = {}
        self.risk_history: Dict[str, List[RiskHistoryEntry]] = {}
        self.exams: Dict[str, List[UpcomingExam]] = {}
        self.study_plans: Dict[str, StudyPlan] = {}
        self.settings: Dict[str, InstitutionSettings] = {}
        self.alerts: Dict[str, List] = {}
        self.risk_overrides: Dict[str, object] = {}

    def add_student(self, student: Student) -> None:
        self.students[student.student_id] = student

    def add_exam(self, exam: UpcomingExam) -> None:
        self.exams.setdefault(exam.student_id, []).append(exam)

    def get_student(self, student_id: str) -> Optional[Student]:
        return self.students.get(student_id)

    def list_students(self, institution_id: str) -> List[Student]:
        return [s for s in self.students.values() if s.institution_id == institution_id]

    def list_assessments(self, student_id: str) -> List[AssessmentRecord]:
        records = self.assessments.get(student_id, [])
        return sorted(records, key=lambda a: as_utc(a.date_taken), reverse=True)

    def add_assessment(self, assessment: AssessmentRecord) -> None:
        self.assessments.setdefault(assessment.student_id, []).append(assessment)

    def get_risk_profile(self, student_id: str) -> Optional[RiskProfile]:
        return self.risk_profiles.get(student_id)

    def upsert_risk_profile(self, profile: RiskProfile) -> None:
        self.risk_profiles[profile.student_id] = profile

    def append_risk_history(self, entry: RiskHistoryEntry) -> None:
        self.risk_history.setdefault(entry.student_id, []).append(entry)

    def list_risk_history(self, student_id: str) -> List[RiskHistoryEntry]:
        return list(self.risk_history.get(student_id, []))

    def list_pending_exams(self, student_id: str) -> List[UpcomingExam]:
        pending = [e for e in self.exams.get(student_id, []) if e.is_pending]
        return sorted(pending, key=lambda e: as_utc(e.scheduled_date))

    def save_study_plan(self, plan: StudyPlan) -> None:
        self.study_plans[plan.plan_id] = plan

    def get_study_plan(self, plan_id: str) -> Optional[StudyPlan]:
        return self.study_plans.get(plan_id)

    def list_study_plans(self, student_id: str) -> List[StudyPlan]:
        plans = [p for p in self.study_plans.values() if p.student_id == student_id]
        return sorted(plans, key=lambda p: p.created_at or p.start_date, reverse=True)

    def get_institution_settings(self, institution_id: str) -> InstitutionSettings:
        if institution_id not in self.settings:
            self.settings[institution_id] = self.default_settings
        return self.settings[institution_id]

    def save_institution_settings(self, institution_id: str, settings: InstitutionSettings) -> None:
        self.settings[institution_id] = settings

    def add_alerts(self, student_id: str, alerts: Iterable) -> None:
        self.alerts.setdefault(student_id, []).extend(alerts)

    def list_alerts(self, student_id: str) -> List:
        return list(self.alerts.get(student_id, []))

    def save_risk_override(self, override) -> None:
        self.risk_overrides[override.override_id] = override

    def get_risk_override(self, override_id: str):
        return self.risk_overrides.get(override_id)

    def list_risk_overrides(self, student_id: str) -> List:
        return [o for o in self.risk_overrides.values() if o.student_id == student_id]
