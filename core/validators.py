"""Pydantic validation models for all user-facing data entry points."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from core.onboarding import ClientStatus


class AssignProgramInput(BaseModel):
    client_user_id: str = Field(min_length=1, max_length=64)
    subscription_id: str = Field(min_length=1, max_length=64)
    start_date: date
    team_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    coach_user_id: Optional[str] = Field(default=None, min_length=1, max_length=64)

    @field_validator("client_user_id", "subscription_id", "team_id", "coach_user_id")
    @classmethod
    def strip_ids(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("identifier must not be blank")
        return v


class TeamAssignInput(BaseModel):
    team_id: str = Field(min_length=1, max_length=64)
    start_date: date
    coach_user_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class OnboardingTransitionInput(BaseModel):
    from_status: ClientStatus
    to_status: ClientStatus
    user_id: Optional[str] = None
    reason: str = Field(default="", max_length=500)

    @field_validator("to_status")
    @classmethod
    def differs_from_current(cls, v, info):
        current = info.data.get("from_status")
        if current is not None and v == current:
            raise ValueError("to_status must differ from from_status")
        return v
