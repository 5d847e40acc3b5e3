"""Program instantiation engine.

Deep-copies a coach-authored program template into a concrete, dated,
per-client program:

- one client day per template day, dated ``start_date + (day_index - 1)``;
- one client module (plus a communication thread) per *published* template
  module, with each exercise's prescription copied into a snapshot;
- one synthesized module per care team specialist whose active window covers
  the day, unless the template already carries a published module with the
  same (owner, type) pair for that day.

The whole materialization runs in a single transaction: a failure rolls back
every row written for the program, so callers never see a partial program.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from core.models import (
    ClientDayModule,
    ClientModuleExercise,
    ClientProgram,
    ClientProgramDay,
    CoachTeam,
    ExercisePrescription,
    ModuleExercise,
    ModuleThread,
    ProgramTemplate,
    Subscription,
    TemplateDay,
)
from core.services.care_team import RosterEntry, active_on, load_roster, synthesized_module_title

logger = logging.getLogger(__name__)

PUBLISHED = "published"
SHARED_VISIBILITY = "shared"
INITIAL_PROGRAM_STATUS = "active"
INITIAL_MODULE_STATUS = "scheduled"


class ProgramAssignmentError(Exception):
    code = "assignment_failed"


class TemplateNotFoundError(ProgramAssignmentError):
    code = "not_found"


class AssignmentWriteError(ProgramAssignmentError):
    code = "write_failure"


class AssignmentReadError(ProgramAssignmentError):
    code = "read_failure"


class CoachScopeError(ProgramAssignmentError):
    code = "forbidden_coach_scope"


@dataclass(frozen=True)
class AssignmentParams:
    coach_user_id: str
    client_user_id: str
    subscription_id: str
    program_template_id: str
    start_date: date
    team_id: Optional[str] = None


@dataclass
class AssignmentResult:
    success: bool
    client_program_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    total_days: int = 0
    total_modules: int = 0
    total_exercises: int = 0

    @classmethod
    def failed(cls, message: str, code: str) -> "AssignmentResult":
        return cls(success=False, error=message, error_code=code)


@dataclass
class TeamAssignmentResult:
    team_id: str
    program_template_id: str
    total_members: int = 0
    assigned: list[AssignmentResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    error_code: Optional[str] = None

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.assigned if r.success)

    @property
    def ok(self) -> bool:
        return self.total_members > 0 and not self.errors

    @property
    def partial(self) -> bool:
        return self.success_count > 0 and bool(self.errors)


def program_day_date(start_date: date, day_index: int) -> date:
    return start_date + timedelta(days=day_index - 1)


def template_visible_to(template: ProgramTemplate, coach_user_id: str) -> bool:
    """A coach may assign their own templates and any shared one."""
    return template.owner_coach_id == coach_user_id or template.visibility == SHARED_VISIBILITY


def prescription_snapshot(prescription: Optional[ExercisePrescription]) -> dict[str, Any]:
    """Copy a prescription by value; JSON fields are deep-copied."""
    if prescription is None:
        return {}
    return {
        "set_count": prescription.set_count,
        "rep_range_min": prescription.rep_range_min,
        "rep_range_max": prescription.rep_range_max,
        "tempo": prescription.tempo,
        "rest_seconds": prescription.rest_seconds,
        "intensity_type": prescription.intensity_type,
        "intensity_value": prescription.intensity_value,
        "warmup_sets_json": deepcopy(prescription.warmup_sets_json),
        "custom_fields_json": deepcopy(prescription.custom_fields_json),
        "progression_notes": prescription.progression_notes,
        "sets_json": deepcopy(prescription.sets_json),
        "linear_progression_enabled": bool(prescription.linear_progression_enabled),
        "progression_config": deepcopy(prescription.progression_config),
    }


def _coerce_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _db_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def _insert(session: Session, row: Any, what: str) -> Any:
    session.add(row)
    try:
        session.flush()
    except SQLAlchemyError as exc:
        raise AssignmentWriteError(f"Failed to create {what}: {_db_message(exc)}") from exc
    return row


def _load_template(session: Session, template_id: str) -> ProgramTemplate:
    try:
        template = session.execute(
            select(ProgramTemplate)
            .where(ProgramTemplate.id == template_id)
            .options(selectinload(ProgramTemplate.days).selectinload(TemplateDay.modules))
        ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise AssignmentReadError(f"Failed to load program template: {_db_message(exc)}") from exc
    if template is None:
        raise TemplateNotFoundError(f"Program template not found: {template_id}")
    return template


def _load_roster(session: Session, subscription_id: str) -> list[RosterEntry]:
    try:
        return load_roster(session, subscription_id)
    except SQLAlchemyError as exc:
        raise AssignmentReadError(f"Failed to load care team: {_db_message(exc)}") from exc


def _load_exercises(session: Session, module_id: str) -> list[ModuleExercise]:
    try:
        return list(
            session.execute(
                select(ModuleExercise)
                .where(ModuleExercise.day_module_id == module_id)
                .options(selectinload(ModuleExercise.prescription))
                .order_by(ModuleExercise.sort_order)
            ).scalars()
        )
    except SQLAlchemyError as exc:
        raise AssignmentReadError(f"Failed to load module exercises: {_db_message(exc)}") from exc


def _materialize(session: Session, params: AssignmentParams) -> AssignmentResult:
    start_date = _coerce_date(params.start_date)
    template = _load_template(session, params.program_template_id)

    program = _insert(
        session,
        ClientProgram(
            user_id=params.client_user_id,
            subscription_id=params.subscription_id,
            primary_coach_id=params.coach_user_id,
            source_template_id=template.id,
            start_date=start_date,
            status=INITIAL_PROGRAM_STATUS,
            team_id=params.team_id,
        ),
        "client program",
    )
    result = AssignmentResult(success=True, client_program_id=program.id)

    # Snapshot of who is on the care team now; not refreshed per day.
    roster = _load_roster(session, params.subscription_id)

    for template_day in sorted(template.days, key=lambda d: d.day_index):
        day_date = program_day_date(start_date, template_day.day_index)
        client_day = _insert(
            session,
            ClientProgramDay(
                client_program_id=program.id,
                day_index=template_day.day_index,
                title=template_day.day_title,
                date=day_date,
            ),
            f"program day {template_day.day_index}",
        )
        result.total_days += 1

        published = sorted(
            (m for m in template_day.modules if m.status == PUBLISHED),
            key=lambda m: m.sort_order,
        )
        max_sort_order = 0
        for module in published:
            exercises = _load_exercises(session, module.id)
            client_module = _insert(
                session,
                ClientDayModule(
                    client_program_day_id=client_day.id,
                    source_day_module_id=module.id,
                    module_owner_coach_id=module.module_owner_coach_id,
                    module_type=module.module_type,
                    title=module.title,
                    sort_order=module.sort_order,
                    status=INITIAL_MODULE_STATUS,
                    session_type=module.session_type,
                    session_timing=module.session_timing,
                ),
                f"module '{module.title}'",
            )
            result.total_modules += 1
            max_sort_order = max(max_sort_order, module.sort_order)

            for exercise in exercises:
                _insert(
                    session,
                    ClientModuleExercise(
                        client_day_module_id=client_module.id,
                        exercise_id=exercise.exercise_id,
                        section=exercise.section,
                        sort_order=exercise.sort_order,
                        instructions=exercise.instructions,
                        prescription_snapshot_json=prescription_snapshot(exercise.prescription),
                    ),
                    "module exercise",
                )
                result.total_exercises += 1

            _insert(session, ModuleThread(client_day_module_id=client_module.id), "module thread")

        template_pairs = {(m.module_owner_coach_id, m.module_type) for m in published}
        for member in active_on(roster, day_date):
            if (member.staff_user_id, member.specialty) in template_pairs:
                continue
            max_sort_order += 1
            # Specialist sessions get no exercises and no thread.
            _insert(
                session,
                ClientDayModule(
                    client_program_day_id=client_day.id,
                    module_owner_coach_id=member.staff_user_id,
                    module_type=member.specialty,
                    title=synthesized_module_title(member.specialty),
                    sort_order=max_sort_order,
                    status=INITIAL_MODULE_STATUS,
                ),
                f"{member.specialty} care team module",
            )
            result.total_modules += 1

    return result


def assign_program_to_client(session: Session, params: AssignmentParams) -> AssignmentResult:
    """Materialize a program template for one client.

    Commits on success. On any failure the transaction is rolled back and a
    failed ``AssignmentResult`` carrying the underlying message is returned;
    no exception escapes.
    """
    context = {
        "ctx_template_id": params.program_template_id,
        "ctx_client_user_id": params.client_user_id,
        "ctx_subscription_id": params.subscription_id,
        "ctx_team_id": params.team_id,
    }
    try:
        result = _materialize(session, params)
        session.commit()
    except ProgramAssignmentError as exc:
        session.rollback()
        logger.warning("program_assignment_failed: %s", exc, extra={**context, "ctx_error_code": exc.code})
        return AssignmentResult.failed(str(exc), exc.code)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("program_assignment_commit_failed", extra=context)
        return AssignmentResult.failed(_db_message(exc), AssignmentWriteError.code)

    logger.info(
        "program_assigned",
        extra={
            **context,
            "ctx_client_program_id": result.client_program_id,
            "ctx_total_days": result.total_days,
            "ctx_total_modules": result.total_modules,
            "ctx_total_exercises": result.total_exercises,
        },
    )
    return result


def assign_program_to_team(
    session: Session,
    coach_user_id: str,
    team_id: str,
    program_template_id: str,
    start_date: date,
) -> TeamAssignmentResult:
    """Assign a template to every active member of a team.

    Only the coach who owns the team may assign to it. Each member is
    materialized in its own transaction, so one failing member
    does not undo the others. The team's current template is updated when at
    least one member succeeded.
    """
    outcome = TeamAssignmentResult(team_id=team_id, program_template_id=program_template_id)
    team = session.get(CoachTeam, team_id)
    if team is None:
        outcome.errors.append(f"Team not found: {team_id}")
        outcome.error_code = TemplateNotFoundError.code
        return outcome
    if team.coach_id != coach_user_id:
        outcome.errors.append(f"Team {team_id} is not coached by {coach_user_id}")
        outcome.error_code = CoachScopeError.code
        return outcome

    members = [
        (sub.id, sub.user_id)
        for sub in session.execute(
            select(Subscription)
            .where(Subscription.team_id == team_id, Subscription.status == "active")
            .order_by(Subscription.user_id)
        ).scalars()
    ]
    if not members:
        outcome.errors.append("This team has no active members.")
        outcome.error_code = "no_active_members"
        return outcome

    outcome.total_members = len(members)
    for subscription_id, user_id in members:
        result = assign_program_to_client(
            session,
            AssignmentParams(
                coach_user_id=coach_user_id,
                client_user_id=user_id,
                subscription_id=subscription_id,
                program_template_id=program_template_id,
                start_date=start_date,
                team_id=team_id,
            ),
        )
        outcome.assigned.append(result)
        if not result.success:
            outcome.errors.append(f"{user_id}: {result.error}")

    if outcome.success_count > 0:
        try:
            team = session.get(CoachTeam, team_id)
            team.current_program_template_id = program_template_id
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("team_program_update_failed", extra={"ctx_team_id": team_id})
            outcome.errors.append(f"Failed to update team program: {_db_message(exc)}")
    if outcome.errors and outcome.error_code is None:
        outcome.error_code = "partial_failure" if outcome.success_count else "assignment_failed"

    logger.info(
        "team_program_assigned",
        extra={
            "ctx_team_id": team_id,
            "ctx_template_id": program_template_id,
            "ctx_total_members": outcome.total_members,
            "ctx_success_count": outcome.success_count,
        },
    )
    return outcome
