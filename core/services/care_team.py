"""Care team roster helpers.

A client's care team is the set of specialists (nutrition coach,
physiotherapist, ...) attached to a subscription, each with an active
date window. Only assignments in a participating lifecycle status take part
in program instantiation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.models import CareTeamAssignment

PARTICIPATING_STATUSES: tuple[str, ...] = ("active", "scheduled_end")

SPECIALTY_LABELS: dict[str, str] = {
    "nutrition": "Nutrition",
    "lifestyle": "Lifestyle",
    "bodybuilding": "Bodybuilding",
    "powerlifting": "Powerlifting",
    "running": "Running",
    "calisthenics": "Calisthenics",
    "mobility": "Mobility",
    "physiotherapy": "Physiotherapy",
    "dietitian": "Dietitian",
}


@dataclass(frozen=True)
class RosterEntry:
    """Point-in-time view of one care team assignment."""

    staff_user_id: str
    specialty: str
    active_from: date
    active_until: Optional[date] = None

    def is_active_on(self, day: date) -> bool:
        return is_active_on(self.active_from, self.active_until, day)


def is_active_on(active_from: date, active_until: Optional[date], day: date) -> bool:
    """Inclusive window check; a missing ``active_until`` is open-ended."""
    if day < active_from:
        return False
    return active_until is None or day <= active_until


def specialty_label(specialty: str) -> str:
    return SPECIALTY_LABELS.get(specialty) or specialty.replace("_", " ").title()


def synthesized_module_title(specialty: str) -> str:
    return f"{specialty_label(specialty)} Session"


def load_roster(session: Session, subscription_id: str) -> list[RosterEntry]:
    """Fetch the participating roster for a subscription.

    Ordered by (staff_user_id, specialty) so synthesized sort orders do not
    depend on storage fetch order.
    """
    rows = session.execute(
        select(
            CareTeamAssignment.staff_user_id,
            CareTeamAssignment.specialty,
            CareTeamAssignment.active_from,
            CareTeamAssignment.active_until,
        )
        .where(
            CareTeamAssignment.subscription_id == subscription_id,
            CareTeamAssignment.lifecycle_status.in_(PARTICIPATING_STATUSES),
        )
        .order_by(CareTeamAssignment.staff_user_id, CareTeamAssignment.specialty)
    ).all()
    return [
        RosterEntry(
            staff_user_id=row.staff_user_id,
            specialty=row.specialty,
            active_from=row.active_from,
            active_until=row.active_until,
        )
        for row in rows
    ]


def active_on(roster: list[RosterEntry], day: date) -> list[RosterEntry]:
    return [entry for entry in roster if entry.is_active_on(day)]
