from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr


class User(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: str
    subject: Optional[str] = None
    mobile: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TeacherSummary(BaseModel):
    """Entry in the teacher picker of the session request form."""
    id: int
    name: str
    email: EmailStr
    subject: Optional[str] = None
    mobile: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
