from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from studyhub import crud, models, schemas
from studyhub.database import get_db
from studyhub.exceptions import StudyHubException, UserNotFound
from studyhub.services import chat_service
from studyhub.utils.identifiers import conversation_id as make_conversation_id
from studyhub.utils.security import get_current_user

router = APIRouter(prefix="/chats", tags=["Chat"])


@router.get("/conversation-id/{other_user_id}", response_model=schemas.ConversationIdResponse)
def get_conversation_id(
    other_user_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if other_user_id == current_user.id or not crud.user.get_user(db, other_user_id):
        raise UserNotFound(other_user_id).to_http_exception()
    return {
        "conversation_id": make_conversation_id(current_user.id, other_user_id),
        "participants": sorted([current_user.id, other_user_id]),
    }


@router.get("/my", response_model=List[schemas.ChatThreadResponse])
def get_my_threads(
    space: Optional[str] = Query(None),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return chat_service.list_threads(db, user_id=current_user.id, space=space)
    except StudyHubException as exc:
        raise exc.to_http_exception()


@router.get("/{space}/{conversation_id}/messages", response_model=List[schemas.ChatMessageResponse])
def get_messages(
    space: str,
    conversation_id: str,
    limit: int = Query(100, ge=1, le=500),
    before: Optional[int] = Query(None),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        chat_service.ensure_participant(conversation_id, current_user.id)
        return chat_service.list_messages(
            db, space=space, conversation_id=conversation_id, limit=limit, before=before
        )
    except StudyHubException as exc:
        raise exc.to_http_exception()


@router.post(
    "/{space}/{conversation_id}/messages",
    response_model=schemas.ChatMessageResponse,
    status_code=201,
)
def send_message(
    space: str,
    conversation_id: str,
    payload: schemas.ChatMessageCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return chat_service.send_message(
            db,
            space=space,
            conversation_id=conversation_id,
            sender_id=current_user.id,
            sender_name=current_user.name,
            is_teacher=current_user.is_teacher,
            text=payload.text,
        )
    except StudyHubException as exc:
        raise exc.to_http_exception()


@router.post("/{space}/{conversation_id}/read")
def mark_read(
    space: str,
    conversation_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        count = chat_service.mark_conversation_read(
            db, space=space, conversation_id=conversation_id, reader_id=current_user.id
        )
    except StudyHubException as exc:
        raise exc.to_http_exception()
    return {"message": "Conversation marked as read", "updated": count}
