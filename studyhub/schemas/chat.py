from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatMessageCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message text must not be blank")
        return value.strip()


class ChatMessageResponse(BaseModel):
    id: int
    space: str
    conversation_id: str
    sender_id: Optional[int] = None
    sender_name: str
    is_teacher: bool
    text: str
    timestamp: int
    read: bool

    model_config = ConfigDict(from_attributes=True)


class ChatThreadResponse(BaseModel):
    space: str
    conversation_id: str
    other_user_id: int
    other_user_name: Optional[str] = None
    last_message: Optional[str] = None
    last_message_time: Optional[int] = None
    last_sender_id: Optional[int] = None
    unread_count: int = 0


class ConversationIdResponse(BaseModel):
    conversation_id: str
    participants: List[int]


class ChatbotQuestion(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class ChatbotAnswer(BaseModel):
    reply: str
    model: str
