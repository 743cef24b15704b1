import enum

from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP, func
from sqlalchemy.orm import relationship

from studyhub.database import Base


class UserRole(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    CAREER_GUIDER = "career_guider"
    ADMIN = "admin"


# ---------------- USER (AUTH TABLE) ----------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value, index=True)
    subject = Column(String(100))  # teachers: subject they teach
    mobile = Column(String(20))
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    requested_sessions = relationship(
        "SessionRequest", foreign_keys="SessionRequest.requester_id", back_populates="requester"
    )
    teaching_sessions = relationship(
        "SessionRequest", foreign_keys="SessionRequest.teacher_id", back_populates="teacher"
    )

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER.value
