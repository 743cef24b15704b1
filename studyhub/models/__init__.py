# studyhub/models/__init__.py
# Import models in dependency order
from .user import User, UserRole
from .session_request import SessionRequest, SessionParticipation, SessionStatus
from .notification import Notification, NotificationType
from .chat import ChatMessage, ChatThread, ChatSpace
from .material import Material, MaterialKind

__all__ = [
    "User",
    "UserRole",
    "SessionRequest",
    "SessionParticipation",
    "SessionStatus",
    "Notification",
    "NotificationType",
    "ChatMessage",
    "ChatThread",
    "ChatSpace",
    "Material",
    "MaterialKind",
]
