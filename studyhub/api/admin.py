# studyhub/api/admin.py
"""
Admin endpoints: platform counts and the decision-notification sweep.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from studyhub.database import get_db
from studyhub.models.notification import Notification
from studyhub.models.session_request import SessionRequest, SessionStatus
from studyhub.models.user import User, UserRole
from studyhub.services import session_service
from studyhub.utils.security import require_role

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = require_role(UserRole.ADMIN.value)


# ─────────────────────────────────────────
# GET /admin/stats  (dashboard overview)
# ─────────────────────────────────────────
@router.get("/stats")
def get_dashboard_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    users_by_role = dict(
        db.query(User.role, func.count(User.id)).group_by(User.role).all()
    )
    sessions_by_status = dict(
        db.query(SessionRequest.status, func.count(SessionRequest.id))
        .group_by(SessionRequest.status)
        .all()
    )
    unnotified = db.query(SessionRequest).filter(
        SessionRequest.status.in_(session_service.DECIDED_STATUSES),
        SessionRequest.decision_notified.is_(False),
    ).count()

    return {
        "users": {
            "total": sum(users_by_role.values()),
            **{role.value: users_by_role.get(role.value, 0) for role in UserRole},
        },
        "sessions": {
            "total": sum(sessions_by_status.values()),
            **{s.value: sessions_by_status.get(s.value, 0) for s in SessionStatus},
            "decisions_unnotified": unnotified,
        },
        "notifications": {
            "unread": db.query(Notification).filter(Notification.read.is_(False)).count(),
        },
    }


# ─────────────────────────────────────────
# POST /admin/reconcile-notifications
# ─────────────────────────────────────────
@router.post("/reconcile-notifications")
def reconcile_notifications(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Notify requesters whose approval/rejection notification was lost."""
    delivered = session_service.notify_undelivered_decisions(db)
    remaining = len(session_service.list_undelivered_decisions(db))
    return {"delivered": delivered, "remaining": remaining}
