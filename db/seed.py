"""Demo data seeder.

Builds a small exercise library, a two-week strength template authored by a
demo coach, a client subscription and a nutrition specialist on the client's
care team, so program assignment can be exercised end to end.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy import select

from core.db import session_scope
from core.models import (
    CareTeamAssignment,
    CoachTeam,
    DayModule,
    Exercise,
    ExercisePrescription,
    ModuleExercise,
    ProgramTemplate,
    Subscription,
    TemplateDay,
)

DEMO_COACH_ID = "00000000-0000-4000-8000-000000000001"
DEMO_CLIENT_ID = "00000000-0000-4000-8000-000000000002"
DEMO_DIETITIAN_ID = "00000000-0000-4000-8000-000000000003"
DEMO_TEMPLATE_TITLE = "Foundations Strength (2 weeks)"

EXERCISES: list[dict[str, Any]] = [
    {"name": "Back Squat", "category": "strength", "primary_muscle": "quadriceps"},
    {"name": "Romanian Deadlift", "category": "strength", "primary_muscle": "hamstrings"},
    {"name": "Bench Press", "category": "strength", "primary_muscle": "chest"},
    {"name": "Chest-Supported Row", "category": "strength", "primary_muscle": "upper back"},
    {"name": "World's Greatest Stretch", "category": "mobility", "primary_muscle": "hips"},
]

# (day title, module type, module title, [(exercise name, sets, reps min, reps max, RIR)])
WEEK_LAYOUT: list[tuple[str, str, str, list[tuple[str, int, int, int, float]]]] = [
    ("Lower A", "strength", "Lower Body", [("Back Squat", 4, 5, 8, 2), ("Romanian Deadlift", 3, 8, 10, 2)]),
    ("Upper A", "strength", "Upper Body", [("Bench Press", 4, 6, 8, 2), ("Chest-Supported Row", 3, 10, 12, 1)]),
    ("Recovery", "mobility", "Mobility Flow", [("World's Greatest Stretch", 2, 5, 5, 4)]),
]


def run_migrations() -> None:
    command.upgrade(Config("alembic.ini"), "head")


def seed_exercises() -> dict[str, str]:
    with session_scope() as s:
        existing = {e.name: e.id for e in s.execute(select(Exercise)).scalars()}
        for row in EXERCISES:
            if row["name"] in existing:
                continue
            exercise = Exercise(**row)
            s.add(exercise)
            s.flush()
            existing[exercise.name] = exercise.id
        return existing


def seed_template(exercise_ids: dict[str, str], weeks: int = 2) -> str:
    with session_scope() as s:
        template = s.execute(
            select(ProgramTemplate).where(ProgramTemplate.title == DEMO_TEMPLATE_TITLE)
        ).scalar_one_or_none()
        if template is not None:
            return template.id

        template = ProgramTemplate(owner_coach_id=DEMO_COACH_ID, title=DEMO_TEMPLATE_TITLE, level="beginner")
        day_index = 0
        for _ in range(weeks):
            for day_title, module_type, module_title, prescriptions in WEEK_LAYOUT:
                day_index += 1
                day = TemplateDay(day_index=day_index, day_title=day_title)
                module = DayModule(
                    module_owner_coach_id=DEMO_COACH_ID,
                    module_type=module_type,
                    title=module_title,
                    sort_order=1,
                    status="published",
                    session_type=module_type,
                    session_timing="anytime",
                )
                for position, (name, sets, reps_min, reps_max, rir) in enumerate(prescriptions, start=1):
                    module.exercises.append(
                        ModuleExercise(
                            exercise_id=exercise_ids[name],
                            section="main",
                            sort_order=position,
                            prescription=ExercisePrescription(
                                set_count=sets,
                                rep_range_min=reps_min,
                                rep_range_max=reps_max,
                                tempo="3010",
                                rest_seconds=120,
                                intensity_type="RIR",
                                intensity_value=rir,
                                linear_progression_enabled=module_type == "strength",
                                progression_config={"increment_kg": 2.5} if module_type == "strength" else None,
                            ),
                        )
                    )
                day.modules.append(module)
                template.days.append(day)
        s.add(template)
        s.flush()
        return template.id


def seed_client(start: date) -> str:
    with session_scope() as s:
        sub = s.execute(select(Subscription).where(Subscription.user_id == DEMO_CLIENT_ID)).scalar_one_or_none()
        if sub is not None:
            return sub.id
        team = CoachTeam(coach_id=DEMO_COACH_ID, name="Demo Squad")
        s.add(team)
        s.flush()
        sub = Subscription(user_id=DEMO_CLIENT_ID, coach_id=DEMO_COACH_ID, team_id=team.id, status="active")
        s.add(sub)
        s.flush()
        s.add(
            CareTeamAssignment(
                subscription_id=sub.id,
                client_id=DEMO_CLIENT_ID,
                staff_user_id=DEMO_DIETITIAN_ID,
                specialty="nutrition",
                lifecycle_status="active",
                active_from=start,
                active_until=start + timedelta(days=9),
            )
        )
        return sub.id


def seed_all(start: date | None = None) -> dict[str, str]:
    start = start or date.today()
    exercise_ids = seed_exercises()
    return {
        "template_id": seed_template(exercise_ids),
        "subscription_id": seed_client(start),
    }


if __name__ == "__main__":
    run_migrations()
    print(seed_all())
