# studyhub/schemas/__init__.py

# Auth schemas
from .auth import Token, TokenData, LoginRequest, RegisterRequest

# User schemas
from .user import User, TeacherSummary

# Session schemas
from .session import (
    SessionRequestCreate,
    SessionRejection,
    JoinRequest,
    SessionResponse,
    DecisionResponse,
    SessionPreview,
    JoinParameters,
)

# Notification schemas
from .notification import NotificationResponse, JoinLink, JoinPrompt, NotificationSnapshot

# Chat schemas
from .chat import (
    ChatMessageCreate,
    ChatMessageResponse,
    ChatThreadResponse,
    ConversationIdResponse,
    ChatbotQuestion,
    ChatbotAnswer,
)

# Material schemas
from .material import MaterialCreate, MaterialResponse

__all__ = [
    "Token",
    "TokenData",
    "LoginRequest",
    "RegisterRequest",
    "User",
    "TeacherSummary",
    "SessionRequestCreate",
    "SessionRejection",
    "JoinRequest",
    "SessionResponse",
    "DecisionResponse",
    "SessionPreview",
    "JoinParameters",
    "NotificationResponse",
    "JoinLink",
    "JoinPrompt",
    "NotificationSnapshot",
    "ChatMessageCreate",
    "ChatMessageResponse",
    "ChatThreadResponse",
    "ConversationIdResponse",
    "ChatbotQuestion",
    "ChatbotAnswer",
    "MaterialCreate",
    "MaterialResponse",
]
