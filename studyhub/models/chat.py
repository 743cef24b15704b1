import enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)

from studyhub.database import Base


class ChatSpace(str, enum.Enum):
    PRIVATE = "private"
    CAREER = "career"


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_conversation_order", "space", "conversation_id", "timestamp", "id"),
        UniqueConstraint("space", "conversation_id", "timestamp", name="uq_chat_message_timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    space = Column(String(20), nullable=False)
    conversation_id = Column(String(100), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sender_name = Column(String(100), nullable=False)
    is_teacher = Column(Boolean, default=False, nullable=False)
    text = Column(Text, nullable=False)
    # Epoch milliseconds, strictly increasing within a conversation (unique per conversation)
    timestamp = Column(BigInteger, nullable=False)
    read = Column(Boolean, default=False, nullable=False)


class ChatThread(Base):
    """Per-conversation summary shown in chat lists."""

    __tablename__ = "chat_threads"
    __table_args__ = (
        UniqueConstraint("space", "conversation_id", name="uq_chat_thread_conversation"),
    )

    id = Column(Integer, primary_key=True, index=True)
    space = Column(String(20), nullable=False)
    conversation_id = Column(String(100), nullable=False, index=True)
    first_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    second_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    last_message = Column(Text)
    last_message_time = Column(BigInteger)
    last_sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(TIMESTAMP, server_default=func.now())
