from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    actor_id: Optional[int] = None
    session_id: Optional[int] = None
    type: str
    title: str
    message: str
    reason: Optional[str] = None
    room_id: Optional[str] = None
    read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class JoinLink(BaseModel):
    path: str
    room_id: Optional[str] = None
    session_id: Optional[int] = None
    is_teacher: bool = False


class JoinPrompt(BaseModel):
    """Interruptive join-or-dismiss choice for a started session."""
    notification_id: int
    title: str
    message: str
    actions: List[str] = ["join", "dismiss"]
    join: JoinLink


class NotificationSnapshot(BaseModel):
    notifications: List[NotificationResponse]
    prompts: List[JoinPrompt]
    unread_count: int
