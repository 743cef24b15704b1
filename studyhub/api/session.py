# studyhub/api/session.py
"""
Session lifecycle API: request, teacher approval queue, start/end, and join
by meeting code.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from studyhub import schemas
from studyhub.database import get_db
from studyhub.exceptions import StudyHubException
from studyhub.models.session_request import SessionRequest
from studyhub.models.user import User, UserRole
from studyhub.services import join_service, session_service
from studyhub.utils.security import get_current_user, require_role

router = APIRouter(prefix="/sessions", tags=["sessions"])

require_teacher = require_role(UserRole.TEACHER.value)
require_student = require_role(UserRole.STUDENT.value)


# ======================
# HELPER FUNCTIONS
# ======================
def _to_response(s: SessionRequest) -> schemas.SessionResponse:
    return schemas.SessionResponse(
        id=s.id,
        requester_id=s.requester_id,
        teacher_id=s.teacher_id,
        topic=s.topic,
        description=s.description,
        requested_date=s.requested_date,
        status=s.status,
        meeting_code=s.meeting_code,
        room_id=s.room_id,
        rejection_reason=s.rejection_reason,
        participants=list(s.participants or []),
        requester_name=s.requester.name if s.requester else None,
        teacher_name=s.teacher.name if s.teacher else None,
        started_at=s.started_at,
        ended_at=s.ended_at,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _to_decision(outcome: session_service.DecisionOutcome) -> schemas.DecisionResponse:
    return schemas.DecisionResponse(session=_to_response(outcome.session), notified=outcome.notified)


# ======================
# SESSION LISTING
# ======================
@router.get("/my", response_model=List[schemas.SessionResponse])
def get_my_sessions(
    status: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Sessions the current user requested or teaches, optionally filtered by status"""
    sessions = session_service.list_user_sessions(db, user_id=current_user.id, status=status)
    return [_to_response(s) for s in sessions]


@router.get("/pending", response_model=List[schemas.SessionResponse])
def get_pending_requests(
    current_user: User = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    """Approval queue for the current teacher"""
    requests = session_service.list_pending_requests(db, teacher_id=current_user.id)
    return [_to_response(s) for s in requests]


# ======================
# CREATE SESSION REQUEST
# ======================
@router.post("/request", response_model=schemas.SessionResponse, status_code=201)
def create_session_request(
    payload: schemas.SessionRequestCreate,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db)
):
    try:
        created = session_service.request_session(
            db,
            requester_id=current_user.id,
            teacher_id=payload.teacher_id,
            topic=payload.topic,
            description=payload.description,
            requested_date=payload.requested_date,
        )
    except StudyHubException as exc:
        raise exc.to_http_exception()
    return _to_response(created)


# ======================
# TEACHER DECISIONS
# ======================
@router.patch("/{session_id}/approve", response_model=schemas.DecisionResponse)
def approve_session(
    session_id: int,
    current_user: User = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    try:
        outcome = session_service.approve_request(db, request_id=session_id, teacher_id=current_user.id)
    except StudyHubException as exc:
        raise exc.to_http_exception()
    return _to_decision(outcome)


@router.patch("/{session_id}/reject", response_model=schemas.DecisionResponse)
def reject_session(
    session_id: int,
    payload: schemas.SessionRejection,
    current_user: User = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    try:
        outcome = session_service.reject_request(
            db,
            request_id=session_id,
            teacher_id=current_user.id,
            reason=payload.reason,
        )
    except StudyHubException as exc:
        raise exc.to_http_exception()
    return _to_decision(outcome)


@router.patch("/{session_id}/start", response_model=schemas.DecisionResponse)
def start_session(
    session_id: int,
    current_user: User = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    try:
        outcome = session_service.start_session(db, request_id=session_id, teacher_id=current_user.id)
    except StudyHubException as exc:
        raise exc.to_http_exception()
    return _to_decision(outcome)


@router.patch("/{session_id}/end", response_model=schemas.DecisionResponse)
def end_session(
    session_id: int,
    current_user: User = Depends(require_teacher),
    db: Session = Depends(get_db)
):
    try:
        outcome = session_service.end_session(db, request_id=session_id, teacher_id=current_user.id)
    except StudyHubException as exc:
        raise exc.to_http_exception()
    return _to_decision(outcome)


# ======================
# JOIN BY MEETING CODE
# ======================
@router.get("/join/{meeting_code}", response_model=schemas.SessionPreview)
def preview_session(
    meeting_code: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        s = join_service.preview_session(db, meeting_code)
    except StudyHubException as exc:
        raise exc.to_http_exception()
    return schemas.SessionPreview(
        id=s.id,
        topic=s.topic,
        description=s.description,
        status=s.status,
        requested_date=s.requested_date,
        teacher_id=s.teacher_id,
        teacher_name=s.teacher.name if s.teacher else None,
        teacher_subject=s.teacher.subject if s.teacher else None,
        participants=list(s.participants or []),
    )


@router.post("/join", response_model=schemas.JoinParameters)
def join_session(
    payload: schemas.JoinRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        params = join_service.join_session(
            db,
            meeting_code=payload.meeting_code,
            user_id=current_user.id,
            display_name=current_user.name,
            role=current_user.role,
        )
    except StudyHubException as exc:
        raise exc.to_http_exception()
    return schemas.JoinParameters(**params)
