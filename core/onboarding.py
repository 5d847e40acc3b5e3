"""Client and coach onboarding status machine.

A flat transition table (status -> allowed next statuses) plus helpers that
answer where a user belongs in the onboarding flow. A client cannot reach
the full dashboard until their status is ``active``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)


class ClientStatus(str, Enum):
    NEW = "new"
    PENDING = "pending"
    NEEDS_MEDICAL_REVIEW = "needs_medical_review"
    PENDING_COACH_APPROVAL = "pending_coach_approval"
    PENDING_PAYMENT = "pending_payment"
    APPROVED = "approved"  # legacy alias of pending_payment
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class CoachStatus(str, Enum):
    INVITED = "invited"
    PENDING_PROFILE = "pending_profile"
    PENDING_PAYOUT = "pending_payout"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


BLOCKED_CLIENT_STATUSES: frozenset[str] = frozenset({
    "new",
    "pending",
    "needs_medical_review",
    "pending_coach_approval",
    "pending_payment",
    "approved",
})

LIMITED_ACCESS_STATUSES: frozenset[str] = frozenset({"inactive", "suspended", "cancelled", "expired"})

BLOCKED_COACH_STATUSES: frozenset[str] = frozenset({"invited", "pending_profile", "pending_payout"})

CLIENT_STATUS_TRANSITIONS: Mapping[str, frozenset[str]] = MappingProxyType({
    "new": frozenset({"pending"}),
    "pending": frozenset({"needs_medical_review", "pending_coach_approval", "pending_payment"}),
    "needs_medical_review": frozenset({"pending_coach_approval", "cancelled"}),
    "pending_coach_approval": frozenset({"pending_payment", "cancelled"}),
    "pending_payment": frozenset({"active", "cancelled"}),
    "approved": frozenset({"active", "cancelled"}),
    "active": frozenset({"suspended", "cancelled", "expired", "inactive"}),
    "inactive": frozenset({"active", "suspended", "cancelled"}),
    "suspended": frozenset({"active", "cancelled"}),
    "cancelled": frozenset({"pending"}),  # can re-onboard
    "expired": frozenset({"pending", "active"}),  # can renew
})


@dataclass(frozen=True)
class OnboardingStep:
    id: str
    label: str
    description: str
    route: str
    active_statuses: frozenset[str]
    completed_when: Callable[[str], bool] = field(compare=False)


CLIENT_ONBOARDING_STEPS: tuple[OnboardingStep, ...] = (
    OnboardingStep(
        id="account",
        label="Create Account",
        description="Sign up for an account",
        route="/auth?mode=signup",
        active_statuses=frozenset(),
        completed_when=lambda s: True,
    ),
    OnboardingStep(
        id="intake",
        label="Complete Intake Form",
        description="Tell us about yourself and your goals",
        route="/onboarding",
        active_statuses=frozenset({"new", "pending"}),
        completed_when=lambda s: s != "new",
    ),
    OnboardingStep(
        id="medical",
        label="Medical Review",
        description="PAR-Q health assessment",
        route="/onboarding/medical-review",
        active_statuses=frozenset({"needs_medical_review"}),
        completed_when=lambda s: s not in {"new", "pending", "needs_medical_review"},
    ),
    OnboardingStep(
        id="approval",
        label="Coach Assignment",
        description="Get matched with your coach",
        route="/onboarding/awaiting-approval",
        active_statuses=frozenset({"pending_coach_approval"}),
        completed_when=lambda s: s not in {"new", "pending", "needs_medical_review", "pending_coach_approval"},
    ),
    OnboardingStep(
        id="payment",
        label="Complete Payment",
        description="Set up your subscription",
        route="/onboarding/payment",
        active_statuses=frozenset({"pending_payment", "approved"}),
        completed_when=lambda s: s == "active",
    ),
)


def _value(status: ClientStatus | CoachStatus | str | None) -> Optional[str]:
    if status is None:
        return None
    return status.value if isinstance(status, Enum) else str(status)


def is_onboarding_incomplete(status: ClientStatus | str | None) -> bool:
    value = _value(status)
    return value is None or value in BLOCKED_CLIENT_STATUSES


def has_limited_access(status: ClientStatus | str | None) -> bool:
    return _value(status) in LIMITED_ACCESS_STATUSES


def is_fully_active(status: ClientStatus | str | None) -> bool:
    return _value(status) == "active"


def is_coach_onboarding_incomplete(status: CoachStatus | str | None) -> bool:
    value = _value(status)
    return value is None or value in BLOCKED_COACH_STATUSES


def current_onboarding_step(status: ClientStatus | str | None) -> Optional[OnboardingStep]:
    value = _value(status)
    if value is None:
        return CLIENT_ONBOARDING_STEPS[1]
    for step in CLIENT_ONBOARDING_STEPS:
        if value in step.active_statuses:
            return step
    return None


def onboarding_redirect(status: ClientStatus | str | None) -> Optional[str]:
    """Route the client must be sent to, or None when the dashboard is allowed."""
    value = _value(status)
    if value is None:
        return "/onboarding"
    step = current_onboarding_step(value)
    if step is not None:
        return step.route
    if has_limited_access(value) or is_fully_active(value):
        return None
    # Unknown status
    return "/onboarding"


def onboarding_progress(status: ClientStatus | str | None) -> int:
    value = _value(status)
    if value is None:
        return 0
    for index, step in enumerate(CLIENT_ONBOARDING_STEPS):
        if value in step.active_statuses:
            return round(index / len(CLIENT_ONBOARDING_STEPS) * 100)
    if is_fully_active(value) or has_limited_access(value):
        return 100
    return 0


def is_valid_transition(from_status: ClientStatus | str, to_status: ClientStatus | str) -> bool:
    return _value(to_status) in CLIENT_STATUS_TRANSITIONS.get(_value(from_status) or "", frozenset())


@dataclass(frozen=True)
class StatusChangeEvent:
    user_id: str
    from_status: Optional[str]
    to_status: str
    changed_by: str
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def log_status_change(event: StatusChangeEvent) -> None:
    logger.info(
        "onboarding_status_change",
        extra={
            "ctx_user_id": event.user_id,
            "ctx_from_status": event.from_status,
            "ctx_to_status": event.to_status,
            "ctx_changed_by": event.changed_by,
            "ctx_reason": event.reason,
            "ctx_valid": is_valid_transition(event.from_status or "", event.to_status) if event.from_status else True,
            "ctx_timestamp": event.timestamp.isoformat(),
        },
    )
