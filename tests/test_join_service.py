from __future__ import annotations

import threading

import pytest

from studyhub.config import settings
from studyhub.exceptions import (
    MeetingCodeNotFound,
    SessionEnded,
    SessionNotApproved,
    SessionNotJoinable,
    ValidationFailed,
)
from studyhub.models.session_request import SessionParticipation, SessionRequest
from studyhub.services import join_service, session_service
from studyhub.utils import identifiers

from conftest import create_user


@pytest.fixture
def pending_session(db_session, student, teacher, requested_date, monkeypatch):
    monkeypatch.setattr(identifiers, "generate_meeting_code", lambda length=6: "XK93P1")
    return session_service.request_session(
        db_session,
        requester_id=student.id,
        teacher_id=teacher.id,
        topic="Thermodynamics",
        description="Second law",
        requested_date=requested_date,
    )


@pytest.fixture
def approved_session(db_session, pending_session, teacher):
    outcome = session_service.approve_request(db_session, request_id=pending_session.id, teacher_id=teacher.id)
    return outcome.session


def test_lookup_is_exact_after_normalising_input(db_session, approved_session):
    assert join_service.preview_session(db_session, "XK93P1").id == approved_session.id
    assert join_service.preview_session(db_session, "  xk93p1 ").id == approved_session.id

    with pytest.raises(MeetingCodeNotFound):
        join_service.preview_session(db_session, "XK93P")
    with pytest.raises(MeetingCodeNotFound):
        join_service.preview_session(db_session, "XK93P12")


def test_blank_code_is_rejected(db_session):
    with pytest.raises(ValidationFailed):
        join_service.preview_session(db_session, "   ")


def test_pending_session_cannot_be_joined_while_approval_is_required(db_session, pending_session, student):
    assert settings.REQUIRE_APPROVAL_TO_JOIN is True

    with pytest.raises(SessionNotApproved):
        join_service.join_session(
            db_session,
            meeting_code="XK93P1",
            user_id=student.id,
            display_name=student.name,
        )
    db_session.refresh(pending_session)
    assert pending_session.participants == []


def test_pending_session_joinable_when_gate_disabled(db_session, pending_session, student, monkeypatch):
    monkeypatch.setattr(settings, "REQUIRE_APPROVAL_TO_JOIN", False)

    params = join_service.join_session(
        db_session,
        meeting_code="XK93P1",
        user_id=student.id,
        display_name=student.name,
    )

    # No room yet, so the meeting code doubles as the room id.
    assert params["room_id"] == "XK93P1"
    assert params["already_joined"] is False


def test_join_is_idempotent(db_session, approved_session, student, teacher):
    first = join_service.join_session(
        db_session,
        meeting_code="XK93P1",
        user_id=student.id,
        display_name=student.name,
        role=student.role,
    )
    second = join_service.join_session(
        db_session,
        meeting_code="xk93p1",
        user_id=student.id,
        display_name=student.name,
        role=student.role,
    )

    assert first["already_joined"] is False
    assert second["already_joined"] is True
    assert first["room_id"] == second["room_id"] == approved_session.room_id
    assert first["is_teacher"] is False
    assert first["counterpart_name"] == teacher.name
    assert first["topic"] == "Thermodynamics"

    db_session.refresh(approved_session)
    assert approved_session.participants == [student.name]
    participations = db_session.query(SessionParticipation).filter(
        SessionParticipation.session_id == approved_session.id
    ).all()
    assert len(participations) == 1
    assert participations[0].user_role == "student"
    assert participations[0].teacher_name == teacher.name


def test_teacher_and_student_both_recorded(db_session, approved_session, student, teacher):
    join_service.join_session(db_session, meeting_code="XK93P1", user_id=student.id, display_name=student.name)
    params = join_service.join_session(
        db_session, meeting_code="XK93P1", user_id=teacher.id, display_name=teacher.name
    )

    assert params["is_teacher"] is True
    assert params["counterpart_name"] == student.name
    db_session.refresh(approved_session)
    assert approved_session.participants == [student.name, teacher.name]


def test_rejected_session_is_not_joinable(db_session, pending_session, student, teacher):
    session_service.reject_request(db_session, request_id=pending_session.id, teacher_id=teacher.id, reason="Busy")

    with pytest.raises(SessionNotJoinable):
        join_service.join_session(db_session, meeting_code="XK93P1", user_id=student.id, display_name=student.name)


def test_ended_session_is_gone(db_session, approved_session, student, teacher):
    session_service.end_session(db_session, request_id=approved_session.id, teacher_id=teacher.id)

    with pytest.raises(SessionEnded):
        join_service.preview_session(db_session, "XK93P1")


def test_join_requires_display_name(db_session, approved_session, student):
    with pytest.raises(ValidationFailed):
        join_service.join_session(db_session, meeting_code="XK93P1", user_id=student.id, display_name="  ")


def test_simultaneous_joins_keep_both_participants(file_session_factory, requested_date, monkeypatch):
    monkeypatch.setattr(identifiers, "generate_meeting_code", lambda length=6: "XK93P1")
    setup = file_session_factory()
    try:
        student = create_user(setup, name="Asha Student", email="asha@test.edu")
        teacher = create_user(setup, name="Ravi Teacher", email="ravi@test.edu", role="teacher")
        pending = session_service.request_session(
            setup,
            requester_id=student.id,
            teacher_id=teacher.id,
            topic="Thermodynamics",
            description="Second law",
            requested_date=requested_date,
        )
        session_service.approve_request(setup, request_id=pending.id, teacher_id=teacher.id)
        session_id = pending.id
        joiners = [(student.id, student.name), (teacher.id, teacher.name)]
    finally:
        setup.close()

    # Both joins read the participant list before either writes it.
    barrier = threading.Barrier(2)
    original_preview = join_service.preview_session

    def preview_then_wait(db, meeting_code):
        found = original_preview(db, meeting_code)
        barrier.wait(timeout=5)
        return found

    monkeypatch.setattr(join_service, "preview_session", preview_then_wait)

    results, errors = {}, []

    def join(user_id, name):
        db = file_session_factory()
        try:
            results[user_id] = join_service.join_session(
                db, meeting_code="XK93P1", user_id=user_id, display_name=name
            )
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)
        finally:
            db.close()

    threads = [threading.Thread(target=join, args=joiner) for joiner in joiners]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=15)

    assert errors == []
    assert all(result["already_joined"] is False for result in results.values())

    check = file_session_factory()
    try:
        stored = check.query(SessionRequest).filter(SessionRequest.id == session_id).one()
        assert sorted(stored.participants) == sorted(name for _, name in joiners)
        assert stored.participants_version == 2
        assert check.query(SessionParticipation).filter(
            SessionParticipation.session_id == session_id
        ).count() == 2
    finally:
        check.close()
