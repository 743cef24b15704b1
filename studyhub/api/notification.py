from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from studyhub import models, schemas
from studyhub.database import get_db
from studyhub.exceptions import NotificationNotFound
from studyhub.services import notification_service
from studyhub.utils.security import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def serialize_notification(n: models.Notification) -> dict:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "actor_id": n.actor_id,
        "session_id": n.session_id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "reason": n.reason,
        "room_id": n.room_id,
        "read": n.read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


def build_snapshot(db: Session, user_id: int) -> dict:
    """Full unread set for ``user_id`` plus join prompts for started sessions."""
    unread = notification_service.list_user_notifications(
        db, user_id=user_id, unread_only=True, limit=200
    )
    prompts = [
        prompt for prompt in (notification_service.build_join_prompt(n) for n in unread)
        if prompt is not None
    ]
    return {
        "notifications": [serialize_notification(n) for n in unread],
        "prompts": prompts,
        "unread_count": len(unread),
    }


@router.get("/my", response_model=List[schemas.NotificationResponse])
def get_my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notifications = notification_service.list_user_notifications(
        db,
        user_id=current_user.id,
        unread_only=unread_only,
        limit=limit,
    )
    return [serialize_notification(n) for n in notifications]


@router.get("/snapshot", response_model=schemas.NotificationSnapshot)
def get_snapshot(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Same payload the live feed pushes, for clients that cannot hold a socket."""
    return build_snapshot(db, current_user.id)


@router.get("/unread-count")
def get_unread_count(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"unread_count": notification_service.get_unread_count(db, user_id=current_user.id)}


@router.patch("/read-all")
def mark_all_notifications_read(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    count = notification_service.mark_all_notifications_read(db, user_id=current_user.id)
    return {"message": "All notifications marked as read", "updated": count}


@router.patch("/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        notification = notification_service.mark_notification_read(
            db,
            user_id=current_user.id,
            notification_id=notification_id,
        )
    except NotificationNotFound as exc:
        raise exc.to_http_exception()

    return {"message": "Notification marked as read", "id": notification.id}
