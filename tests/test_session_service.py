from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from studyhub.config import settings
from studyhub.exceptions import (
    MeetingCodeExhausted,
    NotAuthorized,
    SessionAlreadyDecided,
    SessionEnded,
    SessionNotApproved,
    UserNotFound,
    ValidationFailed,
)
from studyhub.models.notification import Notification
from studyhub.models.session_request import SessionRequest
from studyhub.services import notification_service, session_service
from studyhub.utils import identifiers

from conftest import create_user


def _request(db, student, teacher, requested_date, topic="Kinematics"):
    return session_service.request_session(
        db,
        requester_id=student.id,
        teacher_id=teacher.id,
        topic=topic,
        description="Projectile motion doubts",
        requested_date=requested_date,
    )


def _codes(monkeypatch, *codes):
    remaining = iter(codes)
    monkeypatch.setattr(identifiers, "generate_meeting_code", lambda length=6: next(remaining))


def _fail_notification(*args, **kwargs):
    raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))


# ======================
# REQUEST
# ======================

def test_request_creates_pending_session_with_meeting_code(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)

    assert created.id is not None
    assert created.status == "pending"
    assert created.requester_id == student.id
    assert created.teacher_id == teacher.id
    assert created.participants == []
    assert created.room_id is None
    assert len(created.meeting_code) == settings.MEETING_CODE_LENGTH
    assert set(created.meeting_code) <= set(identifiers.MEETING_CODE_ALPHABET)
    assert created.decision_notified is False


@pytest.mark.parametrize(
    "topic, description",
    [("", "Projectile motion"), ("Kinematics", "   "), ("  ", "")],
)
def test_request_rejects_blank_fields_before_writing(db_session, student, teacher, requested_date, topic, description):
    with pytest.raises(ValidationFailed):
        session_service.request_session(
            db_session,
            requester_id=student.id,
            teacher_id=teacher.id,
            topic=topic,
            description=description,
            requested_date=requested_date,
        )
    assert db_session.query(SessionRequest).count() == 0


def test_request_requires_an_existing_teacher(db_session, student, requested_date):
    other_student = create_user(db_session, name="Not A Teacher", email="nat@test.edu")

    with pytest.raises(UserNotFound):
        session_service.request_session(
            db_session,
            requester_id=student.id,
            teacher_id=other_student.id,
            topic="Algebra",
            description="Quadratics",
            requested_date=requested_date,
        )
    assert db_session.query(SessionRequest).count() == 0


def test_meeting_code_collision_draws_a_fresh_code(db_session, student, teacher, requested_date, monkeypatch):
    _codes(monkeypatch, "XK93P1", "XK93P1", "AB12CD")

    first = _request(db_session, student, teacher, requested_date, topic="First")
    second = _request(db_session, student, teacher, requested_date, topic="Second")

    assert first.meeting_code == "XK93P1"
    assert second.meeting_code == "AB12CD"


def test_unique_index_collision_is_retried(db_session, student, teacher, requested_date, monkeypatch):
    # Skip the pre-insert check so the unique index is what catches the duplicate.
    monkeypatch.setattr(session_service, "meeting_code_taken", lambda db, code: False)
    _codes(monkeypatch, "SAME01", "SAME01", "NEW002")

    first = _request(db_session, student, teacher, requested_date, topic="First")
    second = _request(db_session, student, teacher, requested_date, topic="Second")

    assert first.meeting_code == "SAME01"
    assert second.meeting_code == "NEW002"
    assert db_session.query(SessionRequest).count() == 2


def test_meeting_code_allocation_gives_up_after_max_attempts(db_session, student, teacher, requested_date, monkeypatch):
    monkeypatch.setattr(identifiers, "generate_meeting_code", lambda length=6: "XK93P1")
    _request(db_session, student, teacher, requested_date)

    with pytest.raises(MeetingCodeExhausted) as exc_info:
        _request(db_session, student, teacher, requested_date, topic="Again")

    assert exc_info.value.attempts == settings.MEETING_CODE_MAX_ATTEMPTS
    assert db_session.query(SessionRequest).count() == 1


def test_pending_queue_is_ordered_by_requested_date(db_session, student, teacher, requested_date):
    later = _request(db_session, student, teacher, requested_date + timedelta(days=2), topic="Later")
    sooner = _request(db_session, student, teacher, requested_date, topic="Sooner")

    queue = session_service.list_pending_requests(db_session, teacher_id=teacher.id)
    assert [s.id for s in queue] == [sooner.id, later.id]

    session_service.approve_request(db_session, request_id=sooner.id, teacher_id=teacher.id)
    queue = session_service.list_pending_requests(db_session, teacher_id=teacher.id)
    assert [s.id for s in queue] == [later.id]


# ======================
# DECISIONS
# ======================

def test_approve_sets_room_and_notifies_requester(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)

    outcome = session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)

    assert outcome.notified is True
    assert outcome.session.status == "approved"
    assert outcome.session.room_id.startswith(identifiers.ROOM_ID_PREFIX)
    assert outcome.session.decision_notified is True

    notifications = notification_service.list_user_notifications(db_session, user_id=student.id)
    assert len(notifications) == 1
    assert notifications[0].type == "session_approved"
    assert notifications[0].title == "Session Request Approved"
    assert notifications[0].message == 'Your session request for "Kinematics" has been approved'
    assert notifications[0].session_id == created.id
    assert notifications[0].actor_id == teacher.id
    assert notifications[0].read is False


def test_reject_records_reason_and_notifies_requester(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)

    outcome = session_service.reject_request(
        db_session,
        request_id=created.id,
        teacher_id=teacher.id,
        reason="  Fully booked this week  ",
    )

    assert outcome.notified is True
    assert outcome.session.status == "rejected"
    assert outcome.session.rejection_reason == "Fully booked this week"
    notification = db_session.query(Notification).filter(Notification.user_id == student.id).one()
    assert notification.type == "session_rejected"
    assert notification.reason == "Fully booked this week"


def test_reject_requires_a_reason(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)

    with pytest.raises(ValidationFailed):
        session_service.reject_request(db_session, request_id=created.id, teacher_id=teacher.id, reason="   ")

    db_session.refresh(created)
    assert created.status == "pending"


def test_only_the_addressed_teacher_can_decide(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)
    other_teacher = create_user(db_session, name="Other", email="other@test.edu", role="teacher")

    with pytest.raises(NotAuthorized):
        session_service.approve_request(db_session, request_id=created.id, teacher_id=other_teacher.id)

    db_session.refresh(created)
    assert created.status == "pending"


def test_second_decision_is_refused(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)
    session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)

    with pytest.raises(SessionAlreadyDecided) as exc_info:
        session_service.reject_request(db_session, request_id=created.id, teacher_id=teacher.id, reason="Changed mind")
    assert exc_info.value.current_status == "approved"

    with pytest.raises(SessionAlreadyDecided):
        session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)

    db_session.refresh(created)
    assert created.status == "approved"
    assert created.rejection_reason is None
    assert db_session.query(Notification).count() == 1


def test_decision_against_a_stale_read_does_not_overwrite(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)
    assert created.status == "pending"

    # Another device rejects the request between the teacher's read and write.
    db_session.query(SessionRequest).filter(SessionRequest.id == created.id).update(
        {"status": "rejected", "rejection_reason": "Other device"}, synchronize_session=False
    )
    db_session.commit()

    with pytest.raises(SessionAlreadyDecided) as exc_info:
        session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)

    assert exc_info.value.current_status == "rejected"
    db_session.refresh(created)
    assert created.status == "rejected"
    assert created.room_id is None


def test_failed_notification_keeps_the_approval(db_session, student, teacher, requested_date, monkeypatch):
    created = _request(db_session, student, teacher, requested_date)
    monkeypatch.setattr(notification_service, "create_notification", _fail_notification)

    outcome = session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)

    assert outcome.notified is False
    stored = db_session.query(SessionRequest).filter(SessionRequest.id == created.id).one()
    assert stored.status == "approved"
    assert stored.room_id is not None
    assert stored.decision_notified is False
    assert db_session.query(Notification).count() == 0
    assert [s.id for s in session_service.list_undelivered_decisions(db_session)] == [created.id]


def test_reconciliation_delivers_lost_decision_notifications(db_session, student, teacher, requested_date, monkeypatch):
    approved = _request(db_session, student, teacher, requested_date, topic="Optics")
    rejected = _request(db_session, student, teacher, requested_date, topic="Waves")

    monkeypatch.setattr(notification_service, "create_notification", _fail_notification)
    session_service.approve_request(db_session, request_id=approved.id, teacher_id=teacher.id)
    session_service.reject_request(db_session, request_id=rejected.id, teacher_id=teacher.id, reason="Busy")
    monkeypatch.undo()

    assert session_service.notify_undelivered_decisions(db_session) == 2
    assert session_service.notify_undelivered_decisions(db_session) == 0

    notifications = db_session.query(Notification).order_by(Notification.session_id.asc()).all()
    assert [(n.session_id, n.type) for n in notifications] == [
        (approved.id, "session_approved"),
        (rejected.id, "session_rejected"),
    ]
    assert notifications[1].reason == "Busy"
    assert session_service.list_undelivered_decisions(db_session) == []


def test_reconciliation_covers_sessions_ended_before_the_sweep(db_session, student, teacher, requested_date, monkeypatch):
    created = _request(db_session, student, teacher, requested_date, topic="Optics")
    monkeypatch.setattr(notification_service, "create_notification", _fail_notification)
    session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)
    monkeypatch.undo()

    session_service.end_session(db_session, request_id=created.id, teacher_id=teacher.id)
    assert [s.id for s in session_service.list_undelivered_decisions(db_session)] == [created.id]

    assert session_service.notify_undelivered_decisions(db_session) == 1
    approvals = db_session.query(Notification).filter(Notification.type == "session_approved").all()
    assert [(n.session_id, n.user_id) for n in approvals] == [(created.id, student.id)]
    assert session_service.list_undelivered_decisions(db_session) == []


# ======================
# START / END
# ======================

def test_start_session_sends_join_prompt(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)
    session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)

    outcome = session_service.start_session(db_session, request_id=created.id, teacher_id=teacher.id)

    assert outcome.notified is True
    assert outcome.session.started_at is not None
    started = db_session.query(Notification).filter(Notification.type == "session_started").one()
    assert started.user_id == student.id
    assert started.room_id == outcome.session.room_id

    prompt = notification_service.build_join_prompt(started)
    assert prompt["actions"] == ["join", "dismiss"]
    assert prompt["join"] == {
        "path": notification_service.CALL_ENTRY_PATH,
        "room_id": outcome.session.room_id,
        "session_id": created.id,
        "is_teacher": False,
    }


def test_start_requires_approval(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)

    with pytest.raises(SessionNotApproved):
        session_service.start_session(db_session, request_id=created.id, teacher_id=teacher.id)
    assert db_session.query(Notification).count() == 0


def test_ended_session_cannot_be_restarted(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)
    session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)

    outcome = session_service.end_session(db_session, request_id=created.id, teacher_id=teacher.id)
    assert outcome.session.status == "ended"
    assert outcome.session.ended_at is not None

    with pytest.raises(SessionEnded):
        session_service.start_session(db_session, request_id=created.id, teacher_id=teacher.id)
    with pytest.raises(SessionAlreadyDecided):
        session_service.approve_request(db_session, request_id=created.id, teacher_id=teacher.id)

    # Its approval was delivered, so ending it owes nothing.
    assert session_service.list_undelivered_decisions(db_session) == []


def test_user_sessions_cover_both_sides(db_session, student, teacher, requested_date):
    created = _request(db_session, student, teacher, requested_date)

    assert [s.id for s in session_service.list_user_sessions(db_session, user_id=student.id)] == [created.id]
    assert [s.id for s in session_service.list_user_sessions(db_session, user_id=teacher.id)] == [created.id]
    assert session_service.list_user_sessions(db_session, user_id=teacher.id, status="approved") == []
