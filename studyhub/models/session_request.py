# studyhub/models/session_request.py
import enum

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from studyhub.database import Base


class SessionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ENDED = "ended"


class SessionRequest(Base):
    __tablename__ = "session_requests"

    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    topic = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    requested_date = Column(TIMESTAMP, nullable=False)
    status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value, index=True)
    meeting_code = Column(String(16), nullable=False, unique=True, index=True)
    room_id = Column(String(64))
    rejection_reason = Column(Text)
    participants = Column(JSON, nullable=False, default=list)
    # Bumped on every participants write; joins compare-and-set against it.
    participants_version = Column(Integer, nullable=False, default=0)
    # Set together with the decision notification; False means the requester was never told.
    decision_notified = Column(Boolean, nullable=False, default=False)
    started_at = Column(TIMESTAMP)
    ended_at = Column(TIMESTAMP)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    requester = relationship("User", foreign_keys=[requester_id], back_populates="requested_sessions")
    teacher = relationship("User", foreign_keys=[teacher_id], back_populates="teaching_sessions")
    participations = relationship(
        "SessionParticipation", back_populates="session", cascade="all, delete-orphan"
    )


class SessionParticipation(Base):
    """Audit trail of first joins into a session."""

    __tablename__ = "session_participations"
    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_participation_session_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("session_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_name = Column(String(100), nullable=False)
    user_role = Column(String(20))
    topic = Column(String(200))
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    teacher_name = Column(String(100))
    joined_at = Column(TIMESTAMP, server_default=func.now(), nullable=False)

    session = relationship("SessionRequest", back_populates="participations")
