"""initial program templates, care team and client program schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "exercise_library",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False, server_default="strength"),
        sa.Column("primary_muscle", sa.String(length=80), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "program_templates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_coach_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("level", sa.String(length=20), nullable=True),
        sa.Column("visibility", sa.String(length=20), nullable=False, server_default="private"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_program_templates_owner_coach_id", "program_templates", ["owner_coach_id"])

    op.create_table(
        "program_template_days",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("program_template_id", sa.String(length=36), sa.ForeignKey("program_templates.id"), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("day_title", sa.String(length=200), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("program_template_id", "day_index", name="uq_template_day_index"),
        sa.CheckConstraint("day_index >= 1"),
    )
    op.create_index("ix_program_template_days_program_template_id", "program_template_days", ["program_template_id"])

    op.create_table(
        "day_modules",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("program_template_day_id", sa.String(length=36), sa.ForeignKey("program_template_days.id"), nullable=False),
        sa.Column("module_owner_coach_id", sa.String(length=36), nullable=False),
        sa.Column("module_type", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("session_type", sa.String(length=30), nullable=True),
        sa.Column("session_timing", sa.String(length=20), nullable=True),
        sa.CheckConstraint("status in ('draft', 'published')"),
    )
    op.create_index("ix_day_modules_program_template_day_id", "day_modules", ["program_template_day_id"])

    op.create_table(
        "module_exercises",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("day_module_id", sa.String(length=36), sa.ForeignKey("day_modules.id"), nullable=False),
        sa.Column("exercise_id", sa.String(length=36), sa.ForeignKey("exercise_library.id"), nullable=False),
        sa.Column("section", sa.String(length=20), nullable=False, server_default="main"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("instructions", sa.Text(), nullable=True),
    )
    op.create_index("ix_module_exercises_day_module_id", "module_exercises", ["day_module_id"])

    op.create_table(
        "exercise_prescriptions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("module_exercise_id", sa.String(length=36), sa.ForeignKey("module_exercises.id"), nullable=False, unique=True),
        sa.Column("set_count", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("rep_range_min", sa.Integer(), nullable=True),
        sa.Column("rep_range_max", sa.Integer(), nullable=True),
        sa.Column("tempo", sa.String(length=20), nullable=True),
        sa.Column("rest_seconds", sa.Integer(), nullable=True),
        sa.Column("intensity_type", sa.String(length=20), nullable=True),
        sa.Column("intensity_value", sa.Float(), nullable=True),
        sa.Column("warmup_sets_json", sa.JSON(), nullable=True),
        sa.Column("custom_fields_json", sa.JSON(), nullable=True),
        sa.Column("progression_notes", sa.Text(), nullable=True),
        sa.Column("sets_json", sa.JSON(), nullable=True),
        sa.Column("linear_progression_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("progression_config", sa.JSON(), nullable=True),
    )

    op.create_table(
        "coach_teams",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("coach_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("current_program_template_id", sa.String(length=36), sa.ForeignKey("program_templates.id"), nullable=True),
    )
    op.create_index("ix_coach_teams_coach_id", "coach_teams", ["coach_id"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("coach_id", sa.String(length=36), nullable=True),
        sa.Column("team_id", sa.String(length=36), sa.ForeignKey("coach_teams.id"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    op.create_index("ix_subscriptions_coach_id", "subscriptions", ["coach_id"])
    op.create_index("ix_subscriptions_team_id", "subscriptions", ["team_id"])

    op.create_table(
        "care_team_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("subscription_id", sa.String(length=36), sa.ForeignKey("subscriptions.id"), nullable=False),
        sa.Column("client_id", sa.String(length=36), nullable=False),
        sa.Column("staff_user_id", sa.String(length=36), nullable=False),
        sa.Column("specialty", sa.String(length=30), nullable=False),
        sa.Column("lifecycle_status", sa.String(length=30), nullable=False, server_default="active"),
        sa.Column("active_from", sa.Date(), nullable=False),
        sa.Column("active_until", sa.Date(), nullable=True),
        sa.Column("end_reason_code", sa.String(length=40), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.CheckConstraint("active_until is null or active_until >= active_from"),
        sa.CheckConstraint("lifecycle_status in ('active', 'scheduled_end', 'terminated_for_cause', 'ended')"),
    )
    op.create_index("ix_care_team_assignments_subscription_id", "care_team_assignments", ["subscription_id"])
    op.create_index("ix_care_team_assignments_client_id", "care_team_assignments", ["client_id"])
    op.create_index("ix_care_team_assignments_staff_user_id", "care_team_assignments", ["staff_user_id"])

    op.create_table(
        "client_programs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("subscription_id", sa.String(length=36), sa.ForeignKey("subscriptions.id"), nullable=False),
        sa.Column("primary_coach_id", sa.String(length=36), nullable=False),
        sa.Column("source_template_id", sa.String(length=36), sa.ForeignKey("program_templates.id"), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("team_id", sa.String(length=36), sa.ForeignKey("coach_teams.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("status in ('active', 'paused', 'ended')"),
    )
    op.create_index("ix_client_programs_user_id", "client_programs", ["user_id"])
    op.create_index("ix_client_programs_subscription_id", "client_programs", ["subscription_id"])
    op.create_index("ix_client_programs_primary_coach_id", "client_programs", ["primary_coach_id"])
    op.create_index("ix_client_programs_team_id", "client_programs", ["team_id"])

    op.create_table(
        "client_program_days",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_program_id", sa.String(length=36), sa.ForeignKey("client_programs.id"), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
    )
    op.create_index("ix_client_program_days_client_program_id", "client_program_days", ["client_program_id"])
    op.create_index("ix_client_program_days_date", "client_program_days", ["date"])

    op.create_table(
        "client_day_modules",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_program_day_id", sa.String(length=36), sa.ForeignKey("client_program_days.id"), nullable=False),
        sa.Column("source_day_module_id", sa.String(length=36), sa.ForeignKey("day_modules.id"), nullable=True),
        sa.Column("module_owner_coach_id", sa.String(length=36), nullable=False),
        sa.Column("module_type", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("session_type", sa.String(length=30), nullable=True),
        sa.Column("session_timing", sa.String(length=20), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("status in ('scheduled', 'available', 'completed', 'skipped')"),
    )
    op.create_index("ix_client_day_modules_client_program_day_id", "client_day_modules", ["client_program_day_id"])

    op.create_table(
        "client_module_exercises",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_day_module_id", sa.String(length=36), sa.ForeignKey("client_day_modules.id"), nullable=False),
        sa.Column("exercise_id", sa.String(length=36), sa.ForeignKey("exercise_library.id"), nullable=False),
        sa.Column("section", sa.String(length=20), nullable=False, server_default="main"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("prescription_snapshot_json", sa.JSON(), nullable=False),
    )
    op.create_index("ix_client_module_exercises_client_day_module_id", "client_module_exercises", ["client_day_module_id"])

    op.create_table(
        "module_threads",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_day_module_id", sa.String(length=36), sa.ForeignKey("client_day_modules.id"), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )


def downgrade() -> None:
    for table in (
        "module_threads",
        "client_module_exercises",
        "client_day_modules",
        "client_program_days",
        "client_programs",
        "care_team_assignments",
        "subscriptions",
        "coach_teams",
        "exercise_prescriptions",
        "module_exercises",
        "day_modules",
        "program_template_days",
        "program_templates",
        "exercise_library",
    ):
        op.drop_table(table)
