from __future__ import annotations

from datetime import date as dt_date
from datetime import datetime as dt_datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str
    app_env: str


class AssignmentOut(BaseModel):
    client_program_id: str
    total_days: int
    total_modules: int
    total_exercises: int


class TeamAssignmentOut(BaseModel):
    team_id: str
    program_template_id: str
    total_members: int
    success_count: int
    client_program_ids: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    status: str


class ClientModuleExerciseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    exercise_id: str
    section: str
    sort_order: int
    instructions: Optional[str] = None
    prescription_snapshot_json: dict[str, Any]


class ClientDayModuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    source_day_module_id: Optional[str] = None
    module_owner_coach_id: str
    module_type: str
    title: str
    sort_order: int
    status: str
    session_type: Optional[str] = None
    session_timing: Optional[str] = None
    has_thread: bool = False
    exercises: list[ClientModuleExerciseOut] = Field(default_factory=list)


class ClientProgramDayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    day_index: int
    title: str
    date: dt_date
    modules: list[ClientDayModuleOut] = Field(default_factory=list)


class ClientProgramOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    subscription_id: str
    primary_coach_id: str
    source_template_id: Optional[str] = None
    start_date: dt_date
    status: str
    team_id: Optional[str] = None
    created_at: dt_datetime
    days: list[ClientProgramDayOut] = Field(default_factory=list)


class OnboardingTransitionOut(BaseModel):
    from_status: str
    to_status: str
    valid: bool
    allowed_next: list[str]
    redirect: Optional[str] = None
    progress_pct: int
