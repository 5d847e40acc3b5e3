from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from api.auth import TokenData, require_permission
from api.deps import get_db
from api.ratelimit import limiter
from api.schemas import (
    AssignmentOut,
    ClientProgramOut,
    HealthResponse,
    OnboardingTransitionOut,
    TeamAssignmentOut,
)
from core.config import get_settings
from core.models import ClientDayModule, ClientProgram, ClientProgramDay, CoachTeam, ProgramTemplate, Subscription
from core.onboarding import (
    CLIENT_STATUS_TRANSITIONS,
    StatusChangeEvent,
    is_valid_transition,
    log_status_change,
    onboarding_progress,
    onboarding_redirect,
)
from core.roles import is_admin
from core.services.program_assignment import (
    AssignmentParams,
    assign_program_to_client,
    assign_program_to_team,
    template_visible_to,
)
from core.validators import AssignProgramInput, OnboardingTransitionInput, TeamAssignInput

router = APIRouter(prefix="/api/v1")

_ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "forbidden_coach_scope": status.HTTP_403_FORBIDDEN,
    "no_active_members": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "read_failure": status.HTTP_503_SERVICE_UNAVAILABLE,
    "write_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _acting_coach(principal: TokenData, requested: Optional[str]) -> str:
    # Admins may assign on behalf of a coach; coaches always act as themselves.
    if requested and requested != principal.user_id:
        if not is_admin(principal.roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN_COACH_SCOPE", "coach_user_id": requested},
            )
        return requested
    return principal.user_id


def _coach_scope_error(resource: str, resource_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": "FORBIDDEN_COACH_SCOPE", "resource": resource, "id": resource_id},
    )


def _check_template_scope(db: Session, principal: TokenData, template_id: str, coach_id: str) -> None:
    if is_admin(principal.roles):
        return
    template = db.get(ProgramTemplate, template_id)
    # Unknown templates are reported by the engine as not_found
    if template is not None and not template_visible_to(template, coach_id):
        raise _coach_scope_error("program_template", template_id)


def _check_subscription(db: Session, principal: TokenData, body: AssignProgramInput, coach_id: str) -> None:
    sub = db.get(Subscription, body.subscription_id)
    if sub is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": f"Subscription not found: {body.subscription_id}"},
        )
    if not is_admin(principal.roles) and sub.coach_id != coach_id:
        raise _coach_scope_error("subscription", sub.id)
    if sub.user_id != body.client_user_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "SUBSCRIPTION_CLIENT_MISMATCH", "message": "Subscription does not belong to this client"},
        )
    if sub.status != "active":
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "SUBSCRIPTION_INACTIVE", "message": f"Subscription is {sub.status}"},
        )


@router.get("/health", response_model=HealthResponse, tags=["ops"])
def health():
    return HealthResponse(status="ok", app_env=get_settings().app_env)


@router.post(
    "/programs/{template_id}/assign",
    response_model=AssignmentOut,
    status_code=status.HTTP_201_CREATED,
    tags=["programs"],
)
@limiter.limit(get_settings().assign_rate_limit)
def assign_program(
    request: Request,
    response: Response,
    template_id: str,
    body: AssignProgramInput,
    principal: Annotated[TokenData, Depends(require_permission("manageWorkouts"))],
    db: Session = Depends(get_db),
):
    del request, response
    coach_id = _acting_coach(principal, body.coach_user_id)
    _check_template_scope(db, principal, template_id, coach_id)
    _check_subscription(db, principal, body, coach_id)
    result = assign_program_to_client(
        db,
        AssignmentParams(
            coach_user_id=coach_id,
            client_user_id=body.client_user_id,
            subscription_id=body.subscription_id,
            program_template_id=template_id,
            start_date=body.start_date,
            team_id=body.team_id,
        ),
    )
    if not result.success:
        raise HTTPException(
            status_code=_ERROR_STATUS.get(result.error_code or "", status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail={"code": (result.error_code or "assignment_failed").upper(), "message": result.error},
        )
    return AssignmentOut(
        client_program_id=result.client_program_id,
        total_days=result.total_days,
        total_modules=result.total_modules,
        total_exercises=result.total_exercises,
    )


@router.post("/programs/{template_id}/assign-team", response_model=TeamAssignmentOut, tags=["programs"])
@limiter.limit(get_settings().assign_rate_limit)
def assign_program_team(
    request: Request,
    response: Response,
    template_id: str,
    body: TeamAssignInput,
    principal: Annotated[TokenData, Depends(require_permission("manageWorkouts"))],
    db: Session = Depends(get_db),
):
    del request, response
    coach_id = _acting_coach(principal, body.coach_user_id)
    if is_admin(principal.roles) and body.coach_user_id is None:
        # Admins without an explicit coach act for the team's coach
        team = db.get(CoachTeam, body.team_id)
        if team is not None:
            coach_id = team.coach_id
    _check_template_scope(db, principal, template_id, coach_id)
    outcome = assign_program_to_team(
        db,
        coach_user_id=coach_id,
        team_id=body.team_id,
        program_template_id=template_id,
        start_date=body.start_date,
    )
    if outcome.total_members == 0:
        raise HTTPException(
            status_code=_ERROR_STATUS.get(outcome.error_code or "", status.HTTP_422_UNPROCESSABLE_ENTITY),
            detail={"code": (outcome.error_code or "assignment_failed").upper(), "message": outcome.errors[0]},
        )
    if outcome.ok:
        label = "assigned"
    elif outcome.partial:
        label = "partial"
    else:
        label = "failed"
    return TeamAssignmentOut(
        team_id=outcome.team_id,
        program_template_id=outcome.program_template_id,
        total_members=outcome.total_members,
        success_count=outcome.success_count,
        client_program_ids=[r.client_program_id for r in outcome.assigned if r.success],
        errors=outcome.errors,
        status=label,
    )


@router.get("/client-programs/{program_id}", response_model=ClientProgramOut, tags=["programs"])
def get_client_program(
    program_id: str,
    principal: Annotated[TokenData, Depends(require_permission("viewAssignedClients"))],
    db: Session = Depends(get_db),
):
    program = db.execute(
        select(ClientProgram)
        .where(ClientProgram.id == program_id)
        .options(
            selectinload(ClientProgram.days)
            .selectinload(ClientProgramDay.modules)
            .selectinload(ClientDayModule.exercises),
            selectinload(ClientProgram.days)
            .selectinload(ClientProgramDay.modules)
            .selectinload(ClientDayModule.thread),
        )
    ).scalar_one_or_none()
    if program is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "Client program not found"})
    if not is_admin(principal.roles) and program.primary_coach_id != principal.user_id:
        raise HTTPException(status_code=403, detail={"code": "FORBIDDEN_COACH_SCOPE"})
    return ClientProgramOut.model_validate(program)


@router.post("/onboarding/transitions", response_model=OnboardingTransitionOut, tags=["onboarding"])
def check_onboarding_transition(
    body: OnboardingTransitionInput,
    principal: Annotated[TokenData, Depends(require_permission("approveClients"))],
):
    valid = is_valid_transition(body.from_status, body.to_status)
    # Only accepted transitions are audited
    if valid and body.user_id:
        log_status_change(
            StatusChangeEvent(
                user_id=body.user_id,
                from_status=body.from_status.value,
                to_status=body.to_status.value,
                changed_by=principal.user_id,
                reason=body.reason or None,
            )
        )
    return OnboardingTransitionOut(
        from_status=body.from_status.value,
        to_status=body.to_status.value,
        valid=valid,
        allowed_next=sorted(CLIENT_STATUS_TRANSITIONS.get(body.from_status.value, ())),
        redirect=onboarding_redirect(body.to_status),
        progress_pct=onboarding_progress(body.to_status),
    )
