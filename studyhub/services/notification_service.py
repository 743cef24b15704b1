from __future__ import annotations

import logging
import threading
from typing import List, Optional

from sqlalchemy.orm import Session

from studyhub import models
from studyhub.exceptions import NotificationNotFound
from studyhub.models.notification import Notification, NotificationType
from studyhub.realtime import broker, notifications_topic
from studyhub.utils.email import is_email_enabled, send_email

logger = logging.getLogger(__name__)

CALL_ENTRY_PATH = "/screens/video-call"

EMAIL_SUBJECT_BY_TYPE = {
    NotificationType.SESSION_APPROVED.value: "Your session request was approved",
    NotificationType.SESSION_REJECTED.value: "Update on your session request",
    NotificationType.SESSION_STARTED.value: "Your session has started",
    NotificationType.SESSION_ENDED.value: "Your session has ended",
}


def list_user_notifications(
    db: Session,
    *,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def get_unread_count(db: Session, *, user_id: int) -> int:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).count()


def mark_notification_read(
    db: Session,
    *,
    user_id: int,
    notification_id: int,
) -> Notification:
    """Flip ``read`` to True. Already-read notifications are left untouched."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        raise NotificationNotFound(notification_id)
    if notification.read:
        return notification

    db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.read.is_(False),
    ).update({"read": True}, synchronize_session=False)
    db.commit()
    db.refresh(notification)
    publish_change(user_id)
    return notification


def mark_all_notifications_read(db: Session, *, user_id: int) -> int:
    updated = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).update({"read": True}, synchronize_session=False)
    db.commit()
    if updated:
        publish_change(user_id)
    return int(updated)


def create_notification(
    db: Session,
    *,
    user_id: int,
    actor_id: Optional[int],
    session_id: Optional[int],
    type: str,
    title: str,
    message: str,
    room_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> Notification:
    """Stage a notification in the current transaction; the caller commits."""
    notification = Notification(
        user_id=user_id,
        actor_id=actor_id,
        session_id=session_id,
        type=type,
        title=title,
        message=message,
        room_id=room_id,
        reason=reason,
        read=False,
    )
    db.add(notification)
    db.flush()
    return notification


def publish_change(user_id: int) -> int:
    """Tell live feeds of ``user_id`` that their unread set changed."""
    return broker.publish(notifications_topic(user_id), {"event": "changed", "user_id": user_id})


def build_join_prompt(notification: Notification) -> Optional[dict]:
    """Join-or-dismiss prompt for started sessions, None for every other type."""
    if notification.type != NotificationType.SESSION_STARTED.value:
        return None
    return {
        "notification_id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "actions": ["join", "dismiss"],
        "join": {
            "path": CALL_ENTRY_PATH,
            "room_id": notification.room_id,
            "session_id": notification.session_id,
            "is_teacher": False,
        },
    }


def _send_notification_email(to_email: str, subject: str, body_text: str, *, notification_id: Optional[int], user_id: Optional[int]) -> None:
    """Send SMTP mail in a background thread so API latency stays low."""
    sent = send_email(
        to_email=to_email,
        subject=subject,
        body_text=body_text,
    )
    if not sent:
        logger.info(
            "Notification email not sent (user_id=%s, notification_id=%s)",
            user_id,
            notification_id,
        )


def dispatch_email_for_notification(db: Session, notification: Notification) -> bool:
    """
    Best-effort email delivery for a committed notification.
    This function never raises and should not impact request success.
    """
    try:
        if not is_email_enabled():
            return False

        recipient = db.query(models.User).filter(
            models.User.id == notification.user_id
        ).first()
        if not recipient or not recipient.email:
            return False

        subject = EMAIL_SUBJECT_BY_TYPE.get(notification.type, notification.title)
        recipient_name = (recipient.name or "there").strip() or "there"
        reason_line = f"Reason: {notification.reason}\n" if notification.reason else ""
        body_text = (
            f"Hi {recipient_name},\n\n"
            f"{notification.message}\n"
            f"{reason_line}\n"
            f"Session ID: {notification.session_id or 'N/A'}\n\n"
            "Open StudyHub to view details."
        )

        worker = threading.Thread(
            target=_send_notification_email,
            args=(
                recipient.email,
                subject,
                body_text,
            ),
            kwargs={
                "notification_id": getattr(notification, "id", None),
                "user_id": notification.user_id,
            },
            daemon=True,
        )
        worker.start()
        return True
    except Exception as exc:
        logger.warning(
            "Notification email dispatch failed (notification_id=%s): %s",
            getattr(notification, "id", None),
            exc,
        )
        return False
