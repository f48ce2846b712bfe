# ABOUTME: Lets an advisor replace a student's computed risk tier with a justified override.
# ABOUTME: Tracks one active override per student, with optional expiry.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from src.common.errors import InvalidInput
from src.common.schemas import RISK_TIERS, RiskProfile, as_utc, utcnow


@dataclass
class RiskOverride:
    override_id: str
    student_id: str
    overridden_by: str
    original_tier: str
    override_tier: str
    justification: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool = True

    def is_expired(self, at: datetime) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) < as_utc(at)


def create_risk_override(
    profile: RiskProfile,
    overridden_by: str,
    override_tier: str,
    justification: str,
    expires_at: Optional[datetime] = None,
    existing: Iterable[RiskOverride] = (),
    created_at: Optional[datetime] = None,
) -> RiskOverride:
    """
    Build a new active override from the profile's current tier.

    Every override already active in `existing` is deactivated in place.
    """

    if override_tier not in RISK_TIERS:
        raise InvalidInput(f"Unknown risk tier '{override_tier}'")
    if not justification or not justification.strip():
        raise InvalidInput("A risk override needs a justification")
    created_at = as_utc(created_at) if created_at is not None else utcnow()
    if expires_at is not None and as_utc(expires_at) <= created_at:
        raise InvalidInput("Override expiry must be after its creation time")

    for previous in existing:
        if previous.student_id == profile.student_id:
            previous.is_active = False

    return RiskOverride(
        override_id=uuid.uuid4().hex,
        student_id=profile.student_id,
        overridden_by=overridden_by,
        original_tier=profile.risk_tier,
        override_tier=override_tier,
        justification=justification.strip(),
        created_at=created_at,
        expires_at=as_utc(expires_at) if expires_at is not None else None,
    )


def active_risk_override(overrides: Iterable[RiskOverride], at: Optional[datetime] = None) -> Optional[RiskOverride]:
    """Newest active override; an expired one is deactivated and ignored."""
    at = as_utc(at) if at is not None else utcnow()
    active = [o for o in overrides if o.is_active]
    if not active:
        return None
    newest = max(active, key=lambda o: as_utc(o.created_at))
    if newest.is_expired(at):
        newest.is_active = False
        return None
    return newest


def effective_risk_tier(profile: Optional[RiskProfile], override: Optional[RiskOverride]) -> Optional[str]:
    if override is not None:
        return override.override_tier
    return profile.risk_tier if profile is not None else None
