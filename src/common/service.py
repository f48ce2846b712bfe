# ABOUTME: Orchestrates scoring and planning against a repository for an explicit principal.
# ABOUTME: Owns persistence, history, alerts, and authorization around the pure engines.

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from src.plan_allocator.generator import generate_study_plan
from src.plan_allocator.progress import (
    summarize_plan_progress,
    transition_plan_status,
    update_plan_settings,
    update_week_progress,
)
from src.plan_allocator.simulation import ExamDateChange, SimulationResult, simulate_plan_adjustment
from src.risk_scorer.actions import generate_top_actions
from src.risk_scorer.alerts import RiskAlert, evaluate_alert_triggers
from src.risk_scorer.cohort import ClerkshipStats, CohortRiskSummary, compare_clerkships, summarize_cohort_risk
from src.risk_scorer.overrides import RiskOverride, active_risk_override, create_risk_override, effective_risk_tier
from src.risk_scorer.scoring import build_history_entry, calculate_risk_profile
from src.risk_scorer.timeline import filter_risk_timeline

from .errors import (
    FeatureDisabled,
    InvalidInput,
    MissingRiskProfile,
    RiskOverrideNotFound,
    StudentNotFound,
    StudyPlanNotFound,
)
from .policy import InstitutionResource, Principal, StudentResource, authorize
from .repository import RiskRepository
from .schemas import (
    AssessmentRecord,
    RiskHistoryEntry,
    RiskProfile,
    Student,
    StudyPlan,
    StudyPlanWeek,
)
from .settings import InstitutionSettings, apply_accommodations_multiplier, apply_settings_update

logger = logging.getLogger(__name__)


class StudentRiskService:
    """
    Application service wrapping RiskScorer and PlanAllocator.

    Callers must serialize recalculations for the same student when the
    repository cannot absorb concurrent upserts of one profile.
    """

    def __init__(self, repository: RiskRepository) -> None:
        self.repository = repository

    def _student(self, student_id: str) -> Student:
        student = self.repository.get_student(student_id)
        if student is None:
            raise StudentNotFound(f"Student {student_id} not found")
        return student

    def _authorize_student(self, principal: Principal, student: Student, action: str) -> None:
        authorize(principal, StudentResource.from_student(student), action)

    def _plan(self, principal: Principal, plan_id: str, action: str) -> StudyPlan:
        plan = self.repository.get_study_plan(plan_id)
        if plan is None:
            raise StudyPlanNotFound(f"Study plan {plan_id} not found")
        self._authorize_student(principal, self._student(plan.student_id), action)
        return plan

    # risk

    def record_assessment(
        self,
        principal: Principal,
        assessment: AssessmentRecord,
        reference_time: Optional[datetime] = None,
    ) -> RiskProfile:
        """Store a new assessment and recompute the student's profile."""
        student = self._student(assessment.student_id)
        self._authorize_student(principal, student, "record_assessment")
        self.repository.add_assessment(assessment)
        logger.info("Recorded assessment %s for student %s", assessment.assessment_id, student.student_id)
        return self._recalculate(student, reference_time)

    def recalculate_risk_profile(
        self,
        principal: Principal,
        student_id: str,
        reference_time: Optional[datetime] = None,
    ) -> RiskProfile:
        student = self._student(student_id)
        self._authorize_student(principal, student, "recalculate_risk")
        return self._recalculate(student, reference_time)

    def _recalculate(self, student: Student, reference_time: Optional[datetime]) -> RiskProfile:
        settings = self.repository.get_institution_settings(student.institution_id)
        history = self.repository.list_assessments(student.student_id)
        previous = self.repository.get_risk_profile(student.student_id)

        profile = calculate_risk_profile(
            student.student_id,
            history,
            thresholds=settings.thresholds,
            reference_time=reference_time,
        )
        self.repository.upsert_risk_profile(profile)
        self.repository.append_risk_history(build_history_entry(profile))
        logger.info(
            "Risk profile for %s: score=%.1f tier=%s trend=%s errors=%d",
            student.student_id,
            profile.overall_risk_score,
            profile.risk_tier,
            profile.trend_direction,
            profile.total_errors_analyzed,
        )

        if settings.enable_auto_alerts:
            alerts = evaluate_alert_triggers(
                profile,
                previous_tier=previous.risk_tier if previous is not None else None,
                active_alerts=[a for a in self.repository.list_alerts(student.student_id) if a.is_active],
            )
            if alerts:
                self.repository.add_alerts(student.student_id, alerts)
                logger.info("Raised %d alert(s) for %s", len(alerts), student.student_id)
        return profile

    def get_risk_profile(self, principal: Principal, student_id: str) -> Optional[RiskProfile]:
        student = self._student(student_id)
        self._authorize_student(principal, student, "view")
        return self.repository.get_risk_profile(student_id)

    def get_risk_timeline(
        self,
        principal: Principal,
        student_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[RiskHistoryEntry]:
        student = self._student(student_id)
        self._authorize_student(principal, student, "view")
        return filter_risk_timeline(self.repository.list_risk_history(student_id), start=start, end=end, limit=limit)

    def list_alerts(self, principal: Principal, student_id: str) -> List[RiskAlert]:
        student = self._student(student_id)
        self._authorize_student(principal, student, "view")
        return self.repository.list_alerts(student_id)

    # plans

    def generate_study_plan(
        self,
        principal: Principal,
        student_id: str,
        start_date: datetime,
        weekly_hours_available: Optional[float] = None,
        daily_hours_cap: Optional[float] = None,
        title: Optional[str] = None,
    ) -> StudyPlan:
        """
        Generate and store a draft plan, filling unset hours from institution defaults.

        The accommodations multiplier only scales the default weekly hours; an
        explicit weekly_hours_available is used as given.
        """
        student = self._student(student_id)
        self._authorize_student(principal, student, "generate_plan")
        settings = self.repository.get_institution_settings(student.institution_id)
        if not settings.enable_study_plan_engine:
            raise FeatureDisabled(f"Study plan engine is disabled for institution {student.institution_id}")

        if weekly_hours_available is None:
            weekly_hours_available = apply_accommodations_multiplier(
                settings.default_weekly_hours,
                student.has_accommodations,
                settings,
            )
        if daily_hours_cap is None:
            daily_hours_cap = settings.default_daily_hours_cap

        plan = generate_study_plan(
            student_id,
            self.repository.list_pending_exams(student_id),
            self.repository.get_risk_profile(student_id),
            start_date=start_date,
            weekly_hours_available=weekly_hours_available,
            daily_hours_cap=daily_hours_cap,
            title=title,
        )
        self.repository.save_study_plan(plan)
        logger.info(
            "Generated plan %s for %s: %d week(s) at %.1f h/week",
            plan.plan_id,
            student_id,
            len(plan.weeks),
            plan.weekly_hours_available,
        )
        return plan

    def list_study_plans(self, principal: Principal, student_id: str) -> List[StudyPlan]:
        student = self._student(student_id)
        self._authorize_student(principal, student, "view")
        return self.repository.list_study_plans(student_id)

    def update_plan_status(
        self,
        principal: Principal,
        plan_id: str,
        new_status: str,
        at: Optional[datetime] = None,
    ) -> StudyPlan:
        plan = self._plan(principal, plan_id, "update_plan")
        previous_status = plan.status
        transition_plan_status(plan, new_status, at=at)
        self.repository.save_study_plan(plan)
        logger.info("Plan %s moved %s -> %s", plan_id, previous_status, plan.status)
        return plan

    def update_plan_settings(
        self,
        principal: Principal,
        plan_id: str,
        weekly_hours_available: Optional[float] = None,
        daily_hours_cap: Optional[float] = None,
        title: Optional[str] = None,
    ) -> StudyPlan:
        plan = self._plan(principal, plan_id, "update_plan")
        update_plan_settings(plan, weekly_hours_available, daily_hours_cap, title)
        self.repository.save_study_plan(plan)
        return plan

    def update_week_progress(
        self,
        principal: Principal,
        plan_id: str,
        week_number: int,
        completed_hours: Optional[float] = None,
        completed_questions: Optional[int] = None,
        is_completed: Optional[bool] = None,
    ) -> StudyPlanWeek:
        plan = self._plan(principal, plan_id, "update_progress")
        week = update_week_progress(plan, week_number, completed_hours, completed_questions, is_completed)
        self.repository.save_study_plan(plan)
        return week

    def plan_progress(self, principal: Principal, plan_id: str) -> Dict[str, float]:
        return summarize_plan_progress(self._plan(principal, plan_id, "view"))

    def simulate_adjustment(
        self,
        principal: Principal,
        plan_id: str,
        exam_date_change: Optional[ExamDateChange] = None,
        hours_change: Optional[float] = None,
        reference_time: Optional[datetime] = None,
    ) -> SimulationResult:
        """Advisory what-if projection; nothing is persisted."""
        plan = self._plan(principal, plan_id, "simulate")
        return simulate_plan_adjustment(
            self.repository.get_risk_profile(plan.student_id),
            self.repository.list_pending_exams(plan.student_id),
            exam_date_change=exam_date_change,
            hours_change=hours_change,
            plan=plan,
            reference_time=reference_time,
        )

    # advisor tools

    def create_risk_override(
        self,
        principal: Principal,
        student_id: str,
        override_tier: str,
        justification: str,
        expires_at: Optional[datetime] = None,
        at: Optional[datetime] = None,
    ) -> RiskOverride:
        """Replace the computed tier with an advisor-set one; earlier overrides are deactivated."""
        student = self._student(student_id)
        self._authorize_student(principal, student, "override_risk")
        profile = self.repository.get_risk_profile(student_id)
        if profile is None:
            raise MissingRiskProfile(f"Risk profile not found for student {student_id}; calculate it first")

        existing = [o for o in self.repository.list_risk_overrides(student_id) if o.is_active]
        override = create_risk_override(
            profile,
            overridden_by=principal.user_id,
            override_tier=override_tier,
            justification=justification,
            expires_at=expires_at,
            existing=existing,
            created_at=at,
        )
        for previous in existing:
            self.repository.save_risk_override(previous)
        self.repository.save_risk_override(override)
        logger.info(
            "Risk override %s for %s: %s -> %s by %s",
            override.override_id,
            student_id,
            override.original_tier,
            override.override_tier,
            principal.user_id,
        )
        return override

    def get_active_risk_override(
        self,
        principal: Principal,
        student_id: str,
        at: Optional[datetime] = None,
    ) -> Optional[RiskOverride]:
        student = self._student(student_id)
        self._authorize_student(principal, student, "view")
        return self._active_override(student_id, at)

    def _active_override(self, student_id: str, at: Optional[datetime]) -> Optional[RiskOverride]:
        overrides = self.repository.list_risk_overrides(student_id)
        was_active = {o.override_id for o in overrides if o.is_active}
        override = active_risk_override(overrides, at=at)
        for expired in overrides:
            if expired.override_id in was_active and not expired.is_active:
                self.repository.save_risk_override(expired)
                logger.info("Risk override %s for %s expired", expired.override_id, student_id)
        return override

    def deactivate_risk_override(self, principal: Principal, override_id: str) -> RiskOverride:
        override = self.repository.get_risk_override(override_id)
        if override is None:
            raise RiskOverrideNotFound(f"Risk override {override_id} not found")
        self._authorize_student(principal, self._student(override.student_id), "override_risk")
        override.is_active = False
        self.repository.save_risk_override(override)
        return override

    def get_effective_risk_tier(
        self,
        principal: Principal,
        student_id: str,
        at: Optional[datetime] = None,
    ) -> Optional[str]:
        """Override tier when one is active, else the computed tier, else None."""
        student = self._student(student_id)
        self._authorize_student(principal, student, "view")
        return effective_risk_tier(self.repository.get_risk_profile(student_id), self._active_override(student_id, at))

    def top_actions(
        self,
        principal: Principal,
        student_id: str,
        reference_time: Optional[datetime] = None,
    ) -> List[str]:
        student = self._student(student_id)
        self._authorize_student(principal, student, "view")
        has_active_plan = any(p.status == "active" for p in self.repository.list_study_plans(student_id))
        return generate_top_actions(
            self.repository.get_risk_profile(student_id),
            self.repository.list_pending_exams(student_id),
            has_active_plan=has_active_plan,
            reference_time=reference_time,
        )

    # institution

    def cohort_summary(
        self,
        principal: Principal,
        institution_id: str,
        class_year: Optional[int] = None,
        exam_type_code: Optional[str] = None,
        weeks_to_exam: Optional[int] = None,
        reference_time: Optional[datetime] = None,
    ) -> CohortRiskSummary:
        authorize(principal, InstitutionResource(institution_id), "view_cohort")
        students = self.repository.list_students(institution_id)
        profiles = self._profiles(students)
        exams = [exam for s in students for exam in self.repository.list_pending_exams(s.student_id)]
        return summarize_cohort_risk(
            students,
            profiles,
            exams,
            class_year=class_year,
            exam_type_code=exam_type_code,
            weeks_to_exam=weeks_to_exam,
            reference_time=reference_time,
        )

    def clerkship_comparisons(self, principal: Principal, institution_id: str) -> List[ClerkshipStats]:
        authorize(principal, InstitutionResource(institution_id), "view_cohort")
        students = self.repository.list_students(institution_id)
        return compare_clerkships(students, self._profiles(students))

    def _profiles(self, students: List[Student]) -> Dict[str, RiskProfile]:
        profiles = {}
        for student in students:
            profile = self.repository.get_risk_profile(student.student_id)
            if profile is not None:
                profiles[student.student_id] = profile
        return profiles

    def get_institution_settings(self, principal: Principal, institution_id: str) -> InstitutionSettings:
        authorize(principal, InstitutionResource(institution_id), "view_cohort")
        return self.repository.get_institution_settings(institution_id)

    def update_institution_settings(
        self,
        principal: Principal,
        institution_id: str,
        updates: Mapping[str, Any],
    ) -> InstitutionSettings:
        """Validated partial update; existing profiles keep their tier until recalculated."""
        authorize(principal, InstitutionResource(institution_id), "manage_settings")
        if not updates:
            raise InvalidInput("No settings to update")
        current = self.repository.get_institution_settings(institution_id)
        updated = apply_settings_update(current, updates)
        self.repository.save_institution_settings(institution_id, updated)
        logger.info("Updated settings for %s: %s", institution_id, ", ".join(sorted(updates)))
        return updated
