"""Role and permission configuration.

Single source of truth for role-based access: the three core roles, their
precedence, the feature permission matrix, blocked route prefixes and the
credential-based subrole capabilities. Every table is immutable and built
once at import.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, Optional

ROLES: tuple[str, ...] = ("admin", "coach", "client")

# Higher value = more privileged
ROLE_PRECEDENCE: Mapping[str, int] = MappingProxyType({
    "admin": 3,
    "coach": 2,
    "client": 1,
})

PERMISSIONS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    # PHI/PII access
    "viewPHI": ("admin",),
    "viewPII": ("admin",),
    "editMedicalData": ("admin",),
    # Client management
    "viewAllClients": ("admin",),
    "viewAssignedClients": ("admin", "coach"),
    "approveClients": ("admin", "coach"),
    "manageSubscriptions": ("admin",),
    # Coach management
    "viewAllCoaches": ("admin",),
    "editCoachProfiles": ("admin",),
    # Content management
    "manageWorkouts": ("admin", "coach"),
    "manageVideos": ("admin",),
    "manageTestimonials": ("admin",),
    # Billing & pricing
    "editPricing": ("admin",),
    "viewPayouts": ("admin", "coach"),
    "manageDiscounts": ("admin",),
    # System
    "viewSystemHealth": ("admin",),
    "viewAuditLogs": ("admin",),
    "runSecurityChecks": ("admin",),
})

BLOCKED_ROUTE_PREFIXES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "admin": ("/coach",),
    "coach": ("/admin",),
    "client": ("/admin", "/coach"),
})

DASHBOARD_ROUTES: Mapping[str, str] = MappingProxyType({
    "admin": "/admin/dashboard",
    "coach": "/coach/dashboard",
    "client": "/dashboard",
})

SUBROLE_CAPABILITIES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "coach": ("canBuildPrograms", "canAssignWorkouts", "canEditNutritionIfNoDietitian"),
    "dietitian": ("canEditNutritionOverride",),
    "physiotherapist": ("canBuildPrograms", "canAssignWorkouts", "canWriteInjuryNotes"),
    "sports_psychologist": ("canWritePsychNotes",),
    "mobility_coach": ("canBuildPrograms", "canAssignWorkouts", "canEditNutritionIfNoDietitian"),
})


def get_primary_role(roles: Iterable[str]) -> str:
    """Highest-precedence known role; ``client`` when none is given."""
    known = [r for r in roles if r in ROLE_PRECEDENCE]
    if not known:
        return "client"
    return max(known, key=lambda r: ROLE_PRECEDENCE[r])


def has_role(roles: Iterable[str], role: str) -> bool:
    return role in set(roles)


def is_admin(roles: Iterable[str]) -> bool:
    return has_role(roles, "admin")


def is_coach_only(roles: Iterable[str]) -> bool:
    role_set = set(roles)
    return "coach" in role_set and "admin" not in role_set


def is_client_only(roles: Iterable[str]) -> bool:
    role_set = set(roles)
    return "admin" not in role_set and "coach" not in role_set


def has_permission(roles: Iterable[str], permission: str) -> bool:
    allowed = PERMISSIONS.get(permission, ())
    return any(role in allowed for role in roles)


def can_view_phi(roles: Iterable[str], user_id: Optional[str], record_owner_id: str) -> bool:
    return has_permission(roles, "viewPHI") or (user_id is not None and user_id == record_owner_id)


def can_edit_medical_data(roles: Iterable[str]) -> bool:
    return has_permission(roles, "editMedicalData")


def is_route_blocked(route: str, primary_role: str) -> bool:
    return any(route.startswith(prefix) for prefix in BLOCKED_ROUTE_PREFIXES.get(primary_role, ()))


def dashboard_for_role(role: str) -> str:
    return DASHBOARD_ROUTES.get(role, DASHBOARD_ROUTES["client"])


def has_capability(approved_slugs: Iterable[str], capability: str) -> bool:
    return any(capability in SUBROLE_CAPABILITIES.get(slug, ()) for slug in approved_slugs)
