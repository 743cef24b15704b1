# studyhub/services/session_service.py
"""
Tutoring-session lifecycle.

pending -> approved | rejected, approved -> ended. Every transition is a
conditional UPDATE on the current status, so a second decision on the same
request is refused instead of overwriting the first one.

Approve/reject/start/end are two independent steps: the status write, then
the requester notification. A failed notification never undoes the status
write; it leaves ``decision_notified`` False for
``notify_undelivered_decisions`` to pick up.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studyhub import crud
from studyhub.config import settings
from studyhub.exceptions import (
    BackendUnavailable,
    MeetingCodeExhausted,
    NotAuthorized,
    SessionAlreadyDecided,
    SessionEnded,
    SessionNotApproved,
    SessionRequestNotFound,
    UserNotFound,
    ValidationFailed,
)
from studyhub.models.notification import NotificationType
from studyhub.models.session_request import SessionRequest, SessionStatus
from studyhub.models.user import UserRole
from studyhub.services import notification_service
from studyhub.utils import identifiers

logger = logging.getLogger(__name__)


@dataclass
class DecisionOutcome:
    """A committed status change plus whether the requester was told about it."""
    session: SessionRequest
    notified: bool


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


def _require_text(field: str, value: Optional[str], message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailed(field, message)
    return cleaned


# ======================
# LOOKUPS
# ======================

def get_session_request(db: Session, request_id: int) -> SessionRequest:
    session_request = db.query(SessionRequest).filter(SessionRequest.id == request_id).first()
    if not session_request:
        raise SessionRequestNotFound(request_id)
    return session_request


def _get_addressed_request(db: Session, request_id: int, teacher_id: int) -> SessionRequest:
    session_request = get_session_request(db, request_id)
    if session_request.teacher_id != teacher_id:
        raise NotAuthorized("Only the addressed teacher can manage this session request")
    return session_request


def meeting_code_taken(db: Session, meeting_code: str) -> bool:
    return db.query(SessionRequest.id).filter(
        SessionRequest.meeting_code == meeting_code
    ).first() is not None


def list_pending_requests(db: Session, *, teacher_id: int) -> List[SessionRequest]:
    """Pending requests addressed to ``teacher_id``, earliest requested date first."""
    return (
        db.query(SessionRequest)
        .filter(
            SessionRequest.teacher_id == teacher_id,
            SessionRequest.status == SessionStatus.PENDING.value,
        )
        .order_by(SessionRequest.requested_date.asc(), SessionRequest.id.asc())
        .all()
    )


def list_user_sessions(
    db: Session,
    *,
    user_id: int,
    status: Optional[str] = None,
) -> List[SessionRequest]:
    """Sessions where the user is either the requester or the teacher."""
    query = db.query(SessionRequest).filter(
        (SessionRequest.requester_id == user_id) | (SessionRequest.teacher_id == user_id)
    )
    if status:
        query = query.filter(SessionRequest.status == status)
    return query.order_by(SessionRequest.requested_date.desc(), SessionRequest.id.desc()).all()


# ======================
# REQUEST
# ======================

def request_session(
    db: Session,
    *,
    requester_id: int,
    teacher_id: int,
    topic: str,
    description: str,
    requested_date: datetime,
) -> SessionRequest:
    """Create one pending request with a meeting code no other request uses."""
    topic = _require_text("topic", topic, "Please fill in all fields")
    description = _require_text("description", description, "Please fill in all fields")
    if requested_date is None:
        raise ValidationFailed("requested_date", "Please pick a date and time")
    if requester_id == teacher_id:
        raise ValidationFailed("teacher_id", "Cannot request a session with yourself")

    teacher = crud.user.get_user_with_role(db, teacher_id, UserRole.TEACHER.value)
    if not teacher:
        raise UserNotFound(teacher_id, role=UserRole.TEACHER.value)

    max_attempts = max(1, settings.MEETING_CODE_MAX_ATTEMPTS)
    for attempt in range(1, max_attempts + 1):
        meeting_code = identifiers.generate_meeting_code(settings.MEETING_CODE_LENGTH)
        if meeting_code_taken(db, meeting_code):
            logger.info("Meeting code collision before insert (attempt %d)", attempt)
            continue

        session_request = SessionRequest(
            requester_id=requester_id,
            teacher_id=teacher_id,
            topic=topic,
            description=description,
            requested_date=_as_naive_utc(requested_date),
            status=SessionStatus.PENDING.value,
            meeting_code=meeting_code,
            participants=[],
            decision_notified=False,
        )
        db.add(session_request)
        try:
            db.commit()
        except IntegrityError:
            # Unique index caught a code inserted concurrently.
            db.rollback()
            logger.info("Meeting code collision on insert (attempt %d)", attempt)
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "Session request insert failed (requester_id=%s, teacher_id=%s): %s",
                requester_id,
                teacher_id,
                exc,
            )
            raise BackendUnavailable("submit session request", exc) from exc

        db.refresh(session_request)
        logger.info(
            "Session request %s created (requester_id=%s, teacher_id=%s)",
            session_request.id,
            requester_id,
            teacher_id,
        )
        return session_request

    logger.error("Meeting code allocation exhausted after %d attempts", max_attempts)
    raise MeetingCodeExhausted(max_attempts)


# ======================
# TRANSITIONS
# ======================

def _transition(
    db: Session,
    session_request: SessionRequest,
    *,
    from_status: SessionStatus,
    values: Dict[str, Any],
    operation: str,
) -> bool:
    """Apply ``values`` only if the row is still in ``from_status``. Returns False if it moved."""
    values = {**values, "updated_at": _utcnow()}
    try:
        updated = db.query(SessionRequest).filter(
            SessionRequest.id == session_request.id,
            SessionRequest.status == from_status.value,
        ).update(values, synchronize_session=False)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Status write failed (%s, request_id=%s): %s", operation, session_request.id, exc)
        raise BackendUnavailable(operation, exc) from exc

    db.refresh(session_request)
    return bool(updated)


def _notify_requester(
    db: Session,
    session_request: SessionRequest,
    *,
    actor_id: int,
    notification_type: NotificationType,
    title: str,
    message: str,
    reason: Optional[str] = None,
    marks_decision: bool = False,
) -> bool:
    """Second saga step. Returns False (and logs) instead of raising on failure."""
    request_id = session_request.id
    requester_id = session_request.requester_id
    try:
        notification = notification_service.create_notification(
            db,
            user_id=requester_id,
            actor_id=actor_id,
            session_id=request_id,
            type=notification_type.value,
            title=title,
            message=message,
            room_id=session_request.room_id,
            reason=reason,
        )
        if marks_decision:
            session_request.decision_notified = True
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "Requester notification lost (type=%s, request_id=%s, requester_id=%s); "
            "status change stands and awaits reconciliation: %s",
            notification_type.value,
            request_id,
            requester_id,
            exc,
        )
        return False

    logger.info(
        "Requester notified (type=%s, request_id=%s, notification_id=%s)",
        notification_type.value,
        request_id,
        notification.id,
    )
    notification_service.publish_change(requester_id)
    notification_service.dispatch_email_for_notification(db, notification)
    return True


def _approval_message(session_request: SessionRequest) -> Dict[str, str]:
    return {
        "title": "Session Request Approved",
        "message": f'Your session request for "{session_request.topic}" has been approved',
    }


def _rejection_message(session_request: SessionRequest) -> Dict[str, str]:
    return {
        "title": "Session Request Rejected",
        "message": f'Your session request for "{session_request.topic}" was rejected',
    }


def approve_request(db: Session, *, request_id: int, teacher_id: int) -> DecisionOutcome:
    session_request = _get_addressed_request(db, request_id, teacher_id)

    room_id = identifiers.generate_room_id()
    moved = _transition(
        db,
        session_request,
        from_status=SessionStatus.PENDING,
        values={
            "status": SessionStatus.APPROVED.value,
            "room_id": room_id,
            "decision_notified": False,
        },
        operation="approve session request",
    )
    if not moved:
        raise SessionAlreadyDecided(request_id, session_request.status)
    logger.info("Session request %s approved (room_id=%s)", request_id, room_id)

    notified = _notify_requester(
        db,
        session_request,
        actor_id=teacher_id,
        notification_type=NotificationType.SESSION_APPROVED,
        marks_decision=True,
        **_approval_message(session_request),
    )
    return DecisionOutcome(session=session_request, notified=notified)


def reject_request(db: Session, *, request_id: int, teacher_id: int, reason: str) -> DecisionOutcome:
    reason = _require_text("reason", reason, "Please provide a reason for rejection")
    session_request = _get_addressed_request(db, request_id, teacher_id)

    moved = _transition(
        db,
        session_request,
        from_status=SessionStatus.PENDING,
        values={
            "status": SessionStatus.REJECTED.value,
            "rejection_reason": reason,
            "decision_notified": False,
        },
        operation="reject session request",
    )
    if not moved:
        raise SessionAlreadyDecided(request_id, session_request.status)
    logger.info("Session request %s rejected", request_id)

    notified = _notify_requester(
        db,
        session_request,
        actor_id=teacher_id,
        notification_type=NotificationType.SESSION_REJECTED,
        reason=reason,
        marks_decision=True,
        **_rejection_message(session_request),
    )
    return DecisionOutcome(session=session_request, notified=notified)


def _require_approved(session_request: SessionRequest) -> None:
    if session_request.status == SessionStatus.ENDED.value:
        raise SessionEnded(session_request.id)
    if session_request.status != SessionStatus.APPROVED.value:
        raise SessionNotApproved(session_request.id, session_request.status)


def start_session(db: Session, *, request_id: int, teacher_id: int) -> DecisionOutcome:
    """Stamp ``started_at`` and push a session_started prompt to the requester."""
    session_request = _get_addressed_request(db, request_id, teacher_id)
    _require_approved(session_request)

    moved = _transition(
        db,
        session_request,
        from_status=SessionStatus.APPROVED,
        values={"started_at": _utcnow()},
        operation="start session",
    )
    if not moved:
        _require_approved(session_request)
    logger.info("Session %s started (room_id=%s)", request_id, session_request.room_id)

    teacher_name = session_request.teacher.name if session_request.teacher else "Your teacher"
    notified = _notify_requester(
        db,
        session_request,
        actor_id=teacher_id,
        notification_type=NotificationType.SESSION_STARTED,
        title="Session Started",
        message=f'{teacher_name} started your session "{session_request.topic}"',
    )
    return DecisionOutcome(session=session_request, notified=notified)


def end_session(db: Session, *, request_id: int, teacher_id: int) -> DecisionOutcome:
    session_request = _get_addressed_request(db, request_id, teacher_id)
    _require_approved(session_request)

    moved = _transition(
        db,
        session_request,
        from_status=SessionStatus.APPROVED,
        values={"status": SessionStatus.ENDED.value, "ended_at": _utcnow()},
        operation="end session",
    )
    if not moved:
        _require_approved(session_request)
    logger.info("Session %s ended", request_id)

    notified = _notify_requester(
        db,
        session_request,
        actor_id=teacher_id,
        notification_type=NotificationType.SESSION_ENDED,
        title="Session Ended",
        message=f'Your session "{session_request.topic}" has ended',
    )
    return DecisionOutcome(session=session_request, notified=notified)


# ======================
# RECONCILIATION
# ======================

# Ended sessions were approved first, so a lost approval can still be owed.
DECIDED_STATUSES = (
    SessionStatus.APPROVED.value,
    SessionStatus.REJECTED.value,
    SessionStatus.ENDED.value,
)


def list_undelivered_decisions(db: Session) -> List[SessionRequest]:
    return (
        db.query(SessionRequest)
        .filter(
            SessionRequest.status.in_(DECIDED_STATUSES),
            SessionRequest.decision_notified.is_(False),
        )
        .order_by(SessionRequest.id.asc())
        .all()
    )


def notify_undelivered_decisions(db: Session) -> int:
    """Create the decision notifications that a failed second step left out."""
    delivered = 0
    for session_request in list_undelivered_decisions(db):
        if session_request.status != SessionStatus.REJECTED.value:
            notified = _notify_requester(
                db,
                session_request,
                actor_id=session_request.teacher_id,
                notification_type=NotificationType.SESSION_APPROVED,
                marks_decision=True,
                **_approval_message(session_request),
            )
        else:
            notified = _notify_requester(
                db,
                session_request,
                actor_id=session_request.teacher_id,
                notification_type=NotificationType.SESSION_REJECTED,
                reason=session_request.rejection_reason,
                marks_decision=True,
                **_rejection_message(session_request),
            )
        if notified:
            delivered += 1
    logger.info("Decision reconciliation delivered %d notification(s)", delivered)
    return delivered
