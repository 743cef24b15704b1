from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ======================
# SESSION REQUEST MODELS
# ======================

class SessionRequestCreate(BaseModel):
    teacher_id: int
    topic: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    requested_date: datetime

    @field_validator("topic", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class SessionRejection(BaseModel):
    reason: str = Field(..., min_length=1)

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Please provide a reason for rejection")
        return value.strip()


class JoinRequest(BaseModel):
    meeting_code: str = Field(..., min_length=1, max_length=16)


# ======================
# SESSION RESPONSE MODELS
# ======================

class SessionResponse(BaseModel):
    id: int
    requester_id: int
    teacher_id: int
    topic: str
    description: str
    requested_date: datetime
    status: str
    meeting_code: str
    room_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    participants: List[str] = []
    requester_name: Optional[str] = None
    teacher_name: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DecisionResponse(BaseModel):
    """Result of approve/reject: the decision always stands, notified may be False."""
    session: SessionResponse
    notified: bool


class SessionPreview(BaseModel):
    id: int
    topic: str
    description: str
    status: str
    requested_date: datetime
    teacher_id: int
    teacher_name: Optional[str] = None
    teacher_subject: Optional[str] = None
    participants: List[str] = []


class JoinParameters(BaseModel):
    """Everything the client needs to enter the call."""
    session_id: int
    room_id: str
    meeting_code: str
    participant_name: str
    counterpart_name: Optional[str] = None
    topic: str
    is_teacher: bool
    already_joined: bool = False
