from __future__ import annotations

import datetime as dt
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


# ── Exercise library & program templates ───────────────────────────────


class Exercise(Base):
    __tablename__ = "exercise_library"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200))
    category: Mapped[str] = mapped_column(String(20), default="strength")
    primary_muscle: Mapped[str] = mapped_column(String(80), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class ProgramTemplate(Base):
    __tablename__ = "program_templates"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_coach_id: Mapped[str] = mapped_column(String(36), index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    level: Mapped[Optional[str]] = mapped_column(String(20))
    visibility: Mapped[str] = mapped_column(String(20), default="private")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    days: Mapped[list["TemplateDay"]] = relationship(
        back_populates="template", order_by="TemplateDay.day_index", cascade="all, delete-orphan"
    )


class TemplateDay(Base):
    __tablename__ = "program_template_days"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    program_template_id: Mapped[str] = mapped_column(ForeignKey("program_templates.id"), index=True)
    day_index: Mapped[int] = mapped_column(Integer)
    day_title: Mapped[str] = mapped_column(String(200))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    template: Mapped[ProgramTemplate] = relationship(back_populates="days")
    modules: Mapped[list["DayModule"]] = relationship(
        back_populates="day", order_by="DayModule.sort_order", cascade="all, delete-orphan"
    )
    __table_args__ = (
        UniqueConstraint("program_template_id", "day_index", name="uq_template_day_index"),
        CheckConstraint("day_index >= 1"),
    )


class DayModule(Base):
    __tablename__ = "day_modules"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    program_template_day_id: Mapped[str] = mapped_column(ForeignKey("program_template_days.id"), index=True)
    module_owner_coach_id: Mapped[str] = mapped_column(String(36))
    module_type: Mapped[str] = mapped_column(String(40))
    title: Mapped[str] = mapped_column(String(200))
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="draft")
    session_type: Mapped[Optional[str]] = mapped_column(String(30))
    session_timing: Mapped[Optional[str]] = mapped_column(String(20))

    day: Mapped[TemplateDay] = relationship(back_populates="modules")
    exercises: Mapped[list["ModuleExercise"]] = relationship(
        back_populates="module", order_by="ModuleExercise.sort_order", cascade="all, delete-orphan"
    )
    __table_args__ = (CheckConstraint("status in ('draft', 'published')"),)


class ModuleExercise(Base):
    __tablename__ = "module_exercises"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    day_module_id: Mapped[str] = mapped_column(ForeignKey("day_modules.id"), index=True)
    exercise_id: Mapped[str] = mapped_column(ForeignKey("exercise_library.id"))
    section: Mapped[str] = mapped_column(String(20), default="main")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    instructions: Mapped[Optional[str]] = mapped_column(Text)

    module: Mapped[DayModule] = relationship(back_populates="exercises")
    prescription: Mapped[Optional["ExercisePrescription"]] = relationship(
        back_populates="module_exercise", uselist=False, cascade="all, delete-orphan"
    )


class ExercisePrescription(Base):
    __tablename__ = "exercise_prescriptions"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    module_exercise_id: Mapped[str] = mapped_column(ForeignKey("module_exercises.id"), unique=True)
    set_count: Mapped[int] = mapped_column(Integer, default=3)
    rep_range_min: Mapped[Optional[int]] = mapped_column(Integer)
    rep_range_max: Mapped[Optional[int]] = mapped_column(Integer)
    tempo: Mapped[Optional[str]] = mapped_column(String(20))
    rest_seconds: Mapped[Optional[int]] = mapped_column(Integer)
    intensity_type: Mapped[Optional[str]] = mapped_column(String(20))
    intensity_value: Mapped[Optional[float]] = mapped_column(Float)
    warmup_sets_json: Mapped[Optional[Any]] = mapped_column(JSON)
    custom_fields_json: Mapped[Optional[Any]] = mapped_column(JSON)
    progression_notes: Mapped[Optional[str]] = mapped_column(Text)
    sets_json: Mapped[Optional[Any]] = mapped_column(JSON)
    linear_progression_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    progression_config: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)

    module_exercise: Mapped[ModuleExercise] = relationship(back_populates="prescription")


# ── Subscriptions, teams & care team ──────────────────────────────────


class CoachTeam(Base):
    __tablename__ = "coach_teams"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    coach_id: Mapped[str] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(120))
    current_program_template_id: Mapped[Optional[str]] = mapped_column(ForeignKey("program_templates.id"))


class Subscription(Base):
    __tablename__ = "subscriptions"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    coach_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    team_id: Mapped[Optional[str]] = mapped_column(ForeignKey("coach_teams.id"), index=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


class CareTeamAssignment(Base):
    __tablename__ = "care_team_assignments"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    subscription_id: Mapped[str] = mapped_column(ForeignKey("subscriptions.id"), index=True)
    client_id: Mapped[str] = mapped_column(String(36), index=True)
    staff_user_id: Mapped[str] = mapped_column(String(36), index=True)
    specialty: Mapped[str] = mapped_column(String(30))
    lifecycle_status: Mapped[str] = mapped_column(String(30), default="active")
    active_from: Mapped[dt.date] = mapped_column(Date)
    active_until: Mapped[Optional[dt.date]] = mapped_column(Date)
    end_reason_code: Mapped[Optional[str]] = mapped_column(String(40))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    __table_args__ = (
        CheckConstraint("active_until is null or active_until >= active_from"),
        CheckConstraint("lifecycle_status in ('active', 'scheduled_end', 'terminated_for_cause', 'ended')"),
    )


# ── Client execution store ────────────────────────────────────────────


class ClientProgram(Base):
    __tablename__ = "client_programs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    subscription_id: Mapped[str] = mapped_column(ForeignKey("subscriptions.id"), index=True)
    primary_coach_id: Mapped[str] = mapped_column(String(36), index=True)
    source_template_id: Mapped[Optional[str]] = mapped_column(ForeignKey("program_templates.id"))
    start_date: Mapped[dt.date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="active")
    team_id: Mapped[Optional[str]] = mapped_column(ForeignKey("coach_teams.id"), index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    days: Mapped[list["ClientProgramDay"]] = relationship(
        back_populates="program", order_by="ClientProgramDay.day_index", cascade="all, delete-orphan"
    )
    __table_args__ = (CheckConstraint("status in ('active', 'paused', 'ended')"),)


class ClientProgramDay(Base):
    __tablename__ = "client_program_days"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    client_program_id: Mapped[str] = mapped_column(ForeignKey("client_programs.id"), index=True)
    day_index: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(200))
    date: Mapped[dt.date] = mapped_column(Date, index=True)

    program: Mapped[ClientProgram] = relationship(back_populates="days")
    modules: Mapped[list["ClientDayModule"]] = relationship(
        back_populates="day", order_by="ClientDayModule.sort_order", cascade="all, delete-orphan"
    )


class ClientDayModule(Base):
    __tablename__ = "client_day_modules"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    client_program_day_id: Mapped[str] = mapped_column(ForeignKey("client_program_days.id"), index=True)
    source_day_module_id: Mapped[Optional[str]] = mapped_column(ForeignKey("day_modules.id"))
    module_owner_coach_id: Mapped[str] = mapped_column(String(36))
    module_type: Mapped[str] = mapped_column(String(40))
    title: Mapped[str] = mapped_column(String(200))
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="scheduled")
    session_type: Mapped[Optional[str]] = mapped_column(String(30))
    session_timing: Mapped[Optional[str]] = mapped_column(String(20))
    completed_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime)

    day: Mapped[ClientProgramDay] = relationship(back_populates="modules")
    exercises: Mapped[list["ClientModuleExercise"]] = relationship(
        back_populates="module", order_by="ClientModuleExercise.sort_order", cascade="all, delete-orphan"
    )
    thread: Mapped[Optional["ModuleThread"]] = relationship(
        back_populates="module", uselist=False, cascade="all, delete-orphan"
    )
    __table_args__ = (CheckConstraint("status in ('scheduled', 'available', 'completed', 'skipped')"),)

    @property
    def has_thread(self) -> bool:
        return self.thread is not None


class ClientModuleExercise(Base):
    __tablename__ = "client_module_exercises"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    client_day_module_id: Mapped[str] = mapped_column(ForeignKey("client_day_modules.id"), index=True)
    exercise_id: Mapped[str] = mapped_column(ForeignKey("exercise_library.id"))
    section: Mapped[str] = mapped_column(String(20), default="main")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    instructions: Mapped[Optional[str]] = mapped_column(Text)
    prescription_snapshot_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    module: Mapped[ClientDayModule] = relationship(back_populates="exercises")


class ModuleThread(Base):
    __tablename__ = "module_threads"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    client_day_module_id: Mapped[str] = mapped_column(ForeignKey("client_day_modules.id"), unique=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    module: Mapped[ClientDayModule] = relationship(back_populates="thread")
