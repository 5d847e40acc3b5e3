from __future__ import annotations

from datetime import date
from pathlib import Path
import sys

from fastapi.testclient import TestClient

COACH_ID = "coach-1"
OTHER_COACH_ID = "coach-2"
ADMIN_ID = "admin-1"
CLIENT_ID = "client-1"
DIETITIAN_ID = "dietitian-1"
TEMPLATE_ID = "tpl-1"
TEAM_ID = "team-1"
EMPTY_TEAM_ID = "team-empty"
SUBSCRIPTION_ID = "sub-1"
SHARED_TEMPLATE_ID = "tpl-shared"
OTHER_SUBSCRIPTION_ID = "sub-other"
PAUSED_SUBSCRIPTION_ID = "sub-paused"


def _reset_runtime_caches():
    from core.config import get_settings
    from core.db import reset_engine

    get_settings.cache_clear()
    reset_engine()


def _purge_api_modules() -> None:
    for name in [
        "api.main",
        "api.routes",
        "api.ratelimit",
    ]:
        sys.modules.pop(name, None)


def _seed_program_data():
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

    with session_scope() as s:
        s.add(Exercise(id="ex-squat", name="Back Squat", category="strength", primary_muscle="quadriceps"))
        s.add(CoachTeam(id=TEAM_ID, coach_id=COACH_ID, name="Morning Crew"))
        s.add(CoachTeam(id=EMPTY_TEAM_ID, coach_id=COACH_ID, name="Empty"))
        s.flush()

        template = ProgramTemplate(id=TEMPLATE_ID, owner_coach_id=COACH_ID, title="Strength Base")
        day1 = TemplateDay(day_index=1, day_title="Lower")
        lower = DayModule(
            module_owner_coach_id=COACH_ID,
            module_type="strength",
            title="Lower Body",
            sort_order=1,
            status="published",
        )
        lower.exercises.append(
            ModuleExercise(
                exercise_id="ex-squat",
                sort_order=1,
                prescription=ExercisePrescription(set_count=5, rep_range_min=5, rep_range_max=5, intensity_type="RIR", intensity_value=2),
            )
        )
        day1.modules.append(lower)
        day1.modules.append(
            DayModule(module_owner_coach_id=COACH_ID, module_type="strength", title="Draft Finisher", sort_order=2, status="draft")
        )
        day2 = TemplateDay(day_index=2, day_title="Rest")
        template.days.extend([day1, day2])
        s.add(template)

        shared = ProgramTemplate(id=SHARED_TEMPLATE_ID, owner_coach_id=OTHER_COACH_ID, title="Open Mobility", visibility="shared")
        shared_day = TemplateDay(day_index=1, day_title="Mobility")
        shared_day.modules.append(
            DayModule(module_owner_coach_id=OTHER_COACH_ID, module_type="mobility", title="Hip Flow", sort_order=1, status="published")
        )
        shared.days.append(shared_day)
        s.add(shared)

        s.add(Subscription(id=SUBSCRIPTION_ID, user_id=CLIENT_ID, coach_id=COACH_ID, team_id=TEAM_ID, status="active"))
        s.add(Subscription(id="sub-2", user_id="client-2", coach_id=COACH_ID, team_id=TEAM_ID, status="active"))
        s.add(Subscription(id=OTHER_SUBSCRIPTION_ID, user_id="client-3", coach_id=OTHER_COACH_ID, status="active"))
        s.add(Subscription(id=PAUSED_SUBSCRIPTION_ID, user_id="client-4", coach_id=COACH_ID, status="paused"))
        s.flush()
        s.add(
            CareTeamAssignment(
                subscription_id=SUBSCRIPTION_ID,
                client_id=CLIENT_ID,
                staff_user_id=DIETITIAN_ID,
                specialty="nutrition",
                lifecycle_status="active",
                active_from=date(2024, 3, 2),
            )
        )


def _create_schema():
    import core.models  # noqa: F401
    from core.db import Base, get_engine

    Base.metadata.create_all(bind=get_engine())


def _build_client(tmp_path: Path, monkeypatch, env_overrides: dict[str, str] | None = None) -> TestClient:
    db_path = tmp_path / "api_test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:5173")
    if env_overrides:
        for key, value in env_overrides.items():
            monkeypatch.setenv(key, value)

    _reset_runtime_caches()
    _purge_api_modules()
    _create_schema()
    _seed_program_data()

    from api.main import create_app

    return TestClient(create_app())


def _auth_headers(user_id: str = COACH_ID, roles: list[str] | None = None) -> dict[str, str]:
    from api.auth import create_access_token

    token = create_access_token({"sub": user_id, "roles": roles or ["coach"]})
    return {"Authorization": f"Bearer {token}"}


def _assign_body(**overrides) -> dict:
    body = {"client_user_id": CLIENT_ID, "subscription_id": SUBSCRIPTION_ID, "start_date": "2024-03-01"}
    body.update(overrides)
    return body


def test_health_echoes_request_id(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "app_env": "test"}
    assert resp.headers["X-Request-ID"] == "req-123"


def test_health_generates_request_id(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.get("/api/v1/health")
    assert resp.headers.get("X-Request-ID")


def test_assign_program_creates_dated_program(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(f"/api/v1/programs/{TEMPLATE_ID}/assign", json=_assign_body(), headers=_auth_headers())
    assert resp.status_code == 201
    payload = resp.json()
    # Lower Body on day 1, Nutrition Session on day 2 (dietitian starts on the 2nd)
    assert payload["total_days"] == 2
    assert payload["total_modules"] == 2
    assert payload["total_exercises"] == 1

    detail = client.get(f"/api/v1/client-programs/{payload['client_program_id']}", headers=_auth_headers())
    assert detail.status_code == 200
    program = detail.json()
    assert program["primary_coach_id"] == COACH_ID
    assert program["source_template_id"] == TEMPLATE_ID
    assert program["start_date"] == "2024-03-01"
    assert [d["date"] for d in program["days"]] == ["2024-03-01", "2024-03-02"]

    day1_modules = program["days"][0]["modules"]
    assert [m["title"] for m in day1_modules] == ["Lower Body"]
    assert day1_modules[0]["has_thread"] is True
    assert day1_modules[0]["exercises"][0]["prescription_snapshot_json"]["set_count"] == 5

    day2_modules = program["days"][1]["modules"]
    assert [(m["title"], m["module_owner_coach_id"]) for m in day2_modules] == [("Nutrition Session", DIETITIAN_ID)]
    assert day2_modules[0]["has_thread"] is False
    assert day2_modules[0]["source_day_module_id"] is None


def test_assign_requires_token(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(f"/api/v1/programs/{TEMPLATE_ID}/assign", json=_assign_body())
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "AUTH_REQUIRED"


def test_assign_rejects_garbage_token(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(),
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "INVALID_TOKEN"


def test_client_role_cannot_assign(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(),
        headers=_auth_headers(CLIENT_ID, ["client"]),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "FORBIDDEN_PERMISSION"


def test_coach_cannot_assign_on_behalf_of_other_coach(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(coach_user_id=OTHER_COACH_ID),
        headers=_auth_headers(),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "FORBIDDEN_COACH_SCOPE"


def test_admin_can_assign_on_behalf_of_coach(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(coach_user_id=COACH_ID),
        headers=_auth_headers(ADMIN_ID, ["admin"]),
    )
    assert resp.status_code == 201
    program_id = resp.json()["client_program_id"]

    detail = client.get(f"/api/v1/client-programs/{program_id}", headers=_auth_headers())
    assert detail.status_code == 200
    assert detail.json()["primary_coach_id"] == COACH_ID


def test_assign_unknown_template_is_404(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post("/api/v1/programs/missing/assign", json=_assign_body(), headers=_auth_headers())
    assert resp.status_code == 404
    detail = resp.json()["detail"]
    assert detail["code"] == "NOT_FOUND"
    assert detail["message"] == "Program template not found: missing"


def test_assign_rejects_blank_ids(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(client_user_id="   "),
        headers=_auth_headers(),
    )
    assert resp.status_code == 422


def test_other_coach_cannot_read_program(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    program_id = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign", json=_assign_body(), headers=_auth_headers()
    ).json()["client_program_id"]

    resp = client.get(f"/api/v1/client-programs/{program_id}", headers=_auth_headers(OTHER_COACH_ID))
    assert resp.status_code == 403

    missing = client.get("/api/v1/client-programs/nope", headers=_auth_headers())
    assert missing.status_code == 404


def test_assign_team_fans_out_to_members(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign-team",
        json={"team_id": TEAM_ID, "start_date": "2024-03-01"},
        headers=_auth_headers(),
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["status"] == "assigned"
    assert payload["total_members"] == 2
    assert payload["success_count"] == 2
    assert len(payload["client_program_ids"]) == 2
    assert payload["errors"] == []

    from core.db import session_scope
    from core.models import CoachTeam

    with session_scope() as s:
        assert s.get(CoachTeam, TEAM_ID).current_program_template_id == TEMPLATE_ID


def test_assign_team_without_members_is_422(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign-team",
        json={"team_id": EMPTY_TEAM_ID, "start_date": "2024-03-01"},
        headers=_auth_headers(),
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == {"code": "NO_ACTIVE_MEMBERS", "message": "This team has no active members."}


def test_assign_team_unknown_team_is_404(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign-team",
        json={"team_id": "ghost", "start_date": "2024-03-01"},
        headers=_auth_headers(),
    )
    assert resp.status_code == 404


def test_assign_team_with_missing_template_reports_failed(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        "/api/v1/programs/missing/assign-team",
        json={"team_id": TEAM_ID, "start_date": "2024-03-01"},
        headers=_auth_headers(),
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["status"] == "failed"
    assert payload["success_count"] == 0
    assert len(payload["errors"]) == 2


def test_onboarding_transition_check(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        "/api/v1/onboarding/transitions",
        json={"from_status": "pending_payment", "to_status": "active", "user_id": CLIENT_ID},
        headers=_auth_headers(),
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["valid"] is True
    assert payload["allowed_next"] == ["active", "cancelled"]
    assert payload["redirect"] is None
    assert payload["progress_pct"] == 100


def test_onboarding_transition_invalid_jump(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        "/api/v1/onboarding/transitions",
        json={"from_status": "new", "to_status": "active"},
        headers=_auth_headers(),
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["valid"] is False
    assert payload["allowed_next"] == ["pending"]


def test_onboarding_transition_same_status_is_422(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        "/api/v1/onboarding/transitions",
        json={"from_status": "active", "to_status": "active"},
        headers=_auth_headers(),
    )
    assert resp.status_code == 422


def test_onboarding_transition_requires_approver(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        "/api/v1/onboarding/transitions",
        json={"from_status": "new", "to_status": "pending"},
        headers=_auth_headers(CLIENT_ID, ["client"]),
    )
    assert resp.status_code == 403


def _program_count() -> int:
    from sqlalchemy import func, select

    from core.db import session_scope
    from core.models import ClientProgram

    with session_scope() as s:
        return s.execute(select(func.count()).select_from(ClientProgram)).scalar_one()


def test_coach_cannot_assign_to_another_coachs_client(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{SHARED_TEMPLATE_ID}/assign",
        json=_assign_body(),
        headers=_auth_headers(OTHER_COACH_ID),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == {"code": "FORBIDDEN_COACH_SCOPE", "resource": "subscription", "id": SUBSCRIPTION_ID}
    assert _program_count() == 0


def test_coach_cannot_assign_another_coachs_private_template(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(client_user_id="client-3", subscription_id=OTHER_SUBSCRIPTION_ID),
        headers=_auth_headers(OTHER_COACH_ID),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["resource"] == "program_template"
    assert _program_count() == 0


def test_shared_template_is_assignable_by_any_coach(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(f"/api/v1/programs/{SHARED_TEMPLATE_ID}/assign", json=_assign_body(), headers=_auth_headers())
    assert resp.status_code == 201
    assert resp.json()["total_days"] == 1


def test_client_id_must_match_subscription(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(client_user_id="someone-else"),
        headers=_auth_headers(),
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "SUBSCRIPTION_CLIENT_MISMATCH"
    assert _program_count() == 0


def test_inactive_subscription_is_rejected(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(client_user_id="client-4", subscription_id=PAUSED_SUBSCRIPTION_ID),
        headers=_auth_headers(),
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "SUBSCRIPTION_INACTIVE"


def test_unknown_subscription_is_404(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign",
        json=_assign_body(subscription_id="sub-ghost"),
        headers=_auth_headers(),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "NOT_FOUND"


def test_coach_cannot_assign_to_another_coachs_team(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{SHARED_TEMPLATE_ID}/assign-team",
        json={"team_id": TEAM_ID, "start_date": "2024-03-01"},
        headers=_auth_headers(OTHER_COACH_ID),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "FORBIDDEN_COACH_SCOPE"
    assert _program_count() == 0


def test_private_template_blocks_team_assignment(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign-team",
        json={"team_id": TEAM_ID, "start_date": "2024-03-01"},
        headers=_auth_headers(OTHER_COACH_ID),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["resource"] == "program_template"


def test_admin_assigns_team_for_its_coach(tmp_path, monkeypatch):
    client = _build_client(tmp_path, monkeypatch)
    resp = client.post(
        f"/api/v1/programs/{TEMPLATE_ID}/assign-team",
        json={"team_id": TEAM_ID, "start_date": "2024-03-01"},
        headers=_auth_headers(ADMIN_ID, ["admin"]),
    )
    assert resp.status_code == 200
    assert resp.json()["success_count"] == 2

    from sqlalchemy import select

    from core.db import session_scope
    from core.models import ClientProgram

    with session_scope() as s:
        coaches = set(s.execute(select(ClientProgram.primary_coach_id)).scalars())
    assert coaches == {COACH_ID}


def test_assign_rate_limit_returns_429_when_enabled(tmp_path, monkeypatch):
    env = {
        "APP_ENV": "dev",
        "RATE_LIMIT_ENABLED": "true",
        "ASSIGN_RATE_LIMIT": "1/minute",
    }
    client = _build_client(tmp_path, monkeypatch, env_overrides=env)
    first = client.post(f"/api/v1/programs/{TEMPLATE_ID}/assign", json=_assign_body(), headers=_auth_headers())
    assert first.status_code == 201, first.text
    limited = client.post(f"/api/v1/programs/{TEMPLATE_ID}/assign", json=_assign_body(), headers=_auth_headers())
    assert limited.status_code == 429, limited.text
    assert limited.json()["detail"]["code"] == "RATE_LIMITED"
    assert limited.headers.get("Retry-After")
    assert _program_count() == 1


def test_onboarding_check_audits_only_valid_transitions(tmp_path, monkeypatch, caplog):
    import logging

    client = _build_client(tmp_path, monkeypatch)
    with caplog.at_level(logging.INFO, logger="core.onboarding"):
        rejected = client.post(
            "/api/v1/onboarding/transitions",
            json={"from_status": "new", "to_status": "active", "user_id": CLIENT_ID},
            headers=_auth_headers(),
        )
        assert rejected.json()["valid"] is False
        assert not [r for r in caplog.records if r.getMessage() == "onboarding_status_change"]

        accepted = client.post(
            "/api/v1/onboarding/transitions",
            json={"from_status": "new", "to_status": "pending", "user_id": CLIENT_ID},
            headers=_auth_headers(),
        )
        assert accepted.json()["valid"] is True
    audits = [r for r in caplog.records if r.getMessage() == "onboarding_status_change"]
    assert len(audits) == 1
    assert audits[0].ctx_to_status == "pending"
