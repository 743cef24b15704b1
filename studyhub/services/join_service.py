"""Meeting-code validation and call entry."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studyhub.config import settings
from studyhub.exceptions import (
    BackendUnavailable,
    MeetingCodeNotFound,
    SessionEnded,
    SessionNotApproved,
    SessionNotJoinable,
    ValidationFailed,
)
from studyhub.models.session_request import SessionParticipation, SessionRequest, SessionStatus
from studyhub.utils.identifiers import normalize_meeting_code

logger = logging.getLogger(__name__)

MAX_JOIN_ATTEMPTS = 5


def find_by_meeting_code(db: Session, meeting_code: str) -> Optional[SessionRequest]:
    return db.query(SessionRequest).filter(
        SessionRequest.meeting_code == meeting_code
    ).first()


def _check_joinable(session_request: SessionRequest) -> SessionRequest:
    if session_request.status == SessionStatus.ENDED.value:
        raise SessionEnded(session_request.id)
    if session_request.status == SessionStatus.REJECTED.value:
        raise SessionNotJoinable(session_request.id, session_request.status)
    if (
        session_request.status == SessionStatus.PENDING.value
        and settings.REQUIRE_APPROVAL_TO_JOIN
    ):
        raise SessionNotApproved(session_request.id, session_request.status)
    return session_request


def preview_session(db: Session, meeting_code: str) -> SessionRequest:
    """Resolve a typed meeting code to a joinable session or raise why it is not."""
    code = normalize_meeting_code(meeting_code)
    if not code:
        raise ValidationFailed("meeting_code", "Please enter a meeting code")

    session_request = find_by_meeting_code(db, code)
    if session_request is None:
        raise MeetingCodeNotFound(code)
    return _check_joinable(session_request)


def _has_participation(db: Session, session_id: int, user_id: int) -> bool:
    return db.query(SessionParticipation.id).filter(
        SessionParticipation.session_id == session_id,
        SessionParticipation.user_id == user_id,
    ).first() is not None


def _append_participant(db: Session, session_request: SessionRequest, display_name: str) -> bool:
    """Add ``display_name`` unless another join rewrote the list since it was read."""
    participants = list(session_request.participants or [])
    version = session_request.participants_version or 0
    updated = db.query(SessionRequest).filter(
        SessionRequest.id == session_request.id,
        SessionRequest.participants_version == version,
    ).update(
        {"participants": participants + [display_name], "participants_version": version + 1},
        synchronize_session=False,
    )
    return bool(updated)


def _reload(db: Session, session_id: int) -> SessionRequest:
    db.expire_all()
    return _check_joinable(
        db.query(SessionRequest).filter(SessionRequest.id == session_id).one()
    )


def join_session(
    db: Session,
    *,
    meeting_code: str,
    user_id: int,
    display_name: str,
    role: Optional[str] = None,
) -> dict:
    """Record the participant (once) and return what the client needs to enter the call."""
    display_name = (display_name or "").strip()
    if not display_name:
        raise ValidationFailed("display_name", "A display name is required to join")

    session_request = preview_session(db, meeting_code)
    session_id = session_request.id
    already_joined = display_name in (session_request.participants or [])

    attempt = 0
    while not already_joined:
        attempt += 1
        try:
            if not _append_participant(db, session_request, display_name):
                db.rollback()
                if attempt >= MAX_JOIN_ATTEMPTS:
                    logger.error("Join kept conflicting (session_id=%s, user_id=%s)", session_id, user_id)
                    raise BackendUnavailable("join session", RuntimeError("concurrent joins"))
                logger.info("Concurrent join on session %s, re-reading (attempt %d)", session_id, attempt)
                session_request = _reload(db, session_id)
                already_joined = display_name in (session_request.participants or [])
                continue

            if not _has_participation(db, session_id, user_id):
                db.add(SessionParticipation(
                    session_id=session_id,
                    user_id=user_id,
                    user_name=display_name,
                    user_role=role,
                    topic=session_request.topic,
                    teacher_id=session_request.teacher_id,
                    teacher_name=session_request.teacher.name if session_request.teacher else None,
                ))
            db.commit()
        except IntegrityError:
            # Same user joined from another device between the check and the insert.
            db.rollback()
            logger.info("Participation already recorded (session_id=%s, user_id=%s)", session_id, user_id)
            session_request = _reload(db, session_id)
            already_joined = display_name in (session_request.participants or [])
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Join write failed (session_id=%s, user_id=%s): %s", session_id, user_id, exc)
            raise BackendUnavailable("join session", exc) from exc

        db.refresh(session_request)
        logger.info("User %s joined session %s", user_id, session_id)
        break
    else:
        logger.info("User %s re-entered session %s", user_id, session_id)

    is_teacher = session_request.teacher_id == user_id
    counterpart = session_request.requester if is_teacher else session_request.teacher
    return {
        "session_id": session_request.id,
        "room_id": session_request.room_id or session_request.meeting_code,
        "meeting_code": session_request.meeting_code,
        "participant_name": display_name,
        "counterpart_name": counterpart.name if counterpart else None,
        "topic": session_request.topic,
        "is_teacher": is_teacher,
        "already_joined": already_joined,
    }
