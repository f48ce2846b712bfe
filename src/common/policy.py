# ABOUTME: Evaluates whether a principal may perform an action on a student or institution.
# ABOUTME: Replaces per-route role checks with one testable policy function.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .errors import PermissionDenied
from .schemas import ROLES, Student

ACTIONS = (
    "view",
    "record_assessment",
    "recalculate_risk",
    "generate_plan",
    "update_plan",
    "update_progress",
    "simulate",
    "override_risk",
    "view_cohort",
    "manage_settings",
)
STUDENT_SELF_ACTIONS = frozenset(
    {
        "view",
        "record_assessment",
        "recalculate_risk",
        "generate_plan",
        "update_plan",
        "update_progress",
        "simulate",
    }
)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller; built by the HTTP layer and passed into every operation."""

    user_id: str
    role: str
    institution_id: str


@dataclass(frozen=True)
class StudentResource:
    institution_id: str
    student_id: str
    user_id: Optional[str] = None

    @classmethod
    def from_student(cls, student: Student) -> "StudentResource":
        return cls(institution_id=student.institution_id, student_id=student.student_id, user_id=student.user_id)


@dataclass(frozen=True)
class InstitutionResource:
    institution_id: str


Resource = Union[StudentResource, InstitutionResource]


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str


def evaluate_policy(principal: Principal, resource: Resource, action: str) -> PolicyDecision:
    """
    Decide allow/deny for (principal, resource, action).

    Rules, first match wins:
    - unknown role or action is denied
    - resources of another institution are denied
    - admins may do anything inside their institution
    - settings are admin-only
    - advisors may do everything else inside their institution
    - students may only work on their own record, never see cohort data
      and never override their own risk tier
    """

    if principal.role not in ROLES:
        return PolicyDecision(False, f"unknown role '{principal.role}'")
    if action not in ACTIONS:
        return PolicyDecision(False, f"unknown action '{action}'")
    if resource.institution_id != principal.institution_id:
        return PolicyDecision(False, "resource belongs to another institution")
    if principal.role == "admin":
        return PolicyDecision(True, "admin access")
    if action == "manage_settings":
        return PolicyDecision(False, "admin access required")
    if principal.role == "advisor":
        return PolicyDecision(True, "advisor access within institution")

    if not isinstance(resource, StudentResource):
        return PolicyDecision(False, "students may only access their own record")
    if resource.user_id is None or resource.user_id != principal.user_id:
        return PolicyDecision(False, "students may only access their own record")
    if action not in STUDENT_SELF_ACTIONS:
        return PolicyDecision(False, f"students may not '{action}'")
    return PolicyDecision(True, "own record")


def authorize(principal: Principal, resource: Resource, action: str) -> None:
    decision = evaluate_policy(principal, resource, action)
    if not decision.allowed:
        raise PermissionDenied(f"{principal.role} {principal.user_id} cannot {action}: {decision.reason}")
