"""Tests for the onboarding status machine."""

from __future__ import annotations

import logging

from core.onboarding import (
    CLIENT_STATUS_TRANSITIONS,
    ClientStatus,
    CoachStatus,
    StatusChangeEvent,
    current_onboarding_step,
    has_limited_access,
    is_coach_onboarding_incomplete,
    is_fully_active,
    is_onboarding_incomplete,
    is_valid_transition,
    log_status_change,
    onboarding_progress,
    onboarding_redirect,
)


def test_every_client_status_has_transitions():
    assert set(CLIENT_STATUS_TRANSITIONS) == {s.value for s in ClientStatus}


def test_happy_path_transitions():
    path = ["new", "pending", "needs_medical_review", "pending_coach_approval", "pending_payment", "active"]
    for current, nxt in zip(path, path[1:]):
        assert is_valid_transition(current, nxt), (current, nxt)


def test_invalid_transitions():
    assert not is_valid_transition("new", "active")
    assert not is_valid_transition(ClientStatus.ACTIVE, ClientStatus.PENDING)
    assert not is_valid_transition("bogus", "active")


def test_reonboarding_and_renewal():
    assert is_valid_transition("cancelled", "pending")
    assert is_valid_transition("expired", "active")


def test_incomplete_and_access_checks():
    assert is_onboarding_incomplete(None)
    assert is_onboarding_incomplete(ClientStatus.PENDING_PAYMENT)
    assert not is_onboarding_incomplete("active")
    assert has_limited_access("suspended")
    assert not has_limited_access("active")
    assert is_fully_active(ClientStatus.ACTIVE)


def test_coach_onboarding():
    assert is_coach_onboarding_incomplete(CoachStatus.PENDING_PROFILE)
    assert is_coach_onboarding_incomplete(None)
    assert not is_coach_onboarding_incomplete("active")


def test_current_step():
    assert current_onboarding_step(None).id == "intake"
    assert current_onboarding_step("new").id == "intake"
    assert current_onboarding_step("needs_medical_review").id == "medical"
    assert current_onboarding_step("approved").id == "payment"
    assert current_onboarding_step("active") is None


def test_redirects():
    assert onboarding_redirect(None) == "/onboarding"
    assert onboarding_redirect("pending_coach_approval") == "/onboarding/awaiting-approval"
    assert onboarding_redirect("pending_payment") == "/onboarding/payment"
    assert onboarding_redirect("active") is None
    assert onboarding_redirect("expired") is None
    assert onboarding_redirect("mystery") == "/onboarding"


def test_progress():
    assert onboarding_progress(None) == 0
    assert onboarding_progress("pending") == 20
    assert onboarding_progress("needs_medical_review") == 40
    assert onboarding_progress("pending_payment") == 80
    assert onboarding_progress("active") == 100
    assert onboarding_progress("cancelled") == 100


def test_log_status_change(caplog):
    with caplog.at_level(logging.INFO, logger="core.onboarding"):
        log_status_change(StatusChangeEvent(user_id="u1", from_status="new", to_status="active", changed_by="coach-1"))
    record = caplog.records[-1]
    assert record.getMessage() == "onboarding_status_change"
    assert record.ctx_user_id == "u1"
    assert record.ctx_valid is False
