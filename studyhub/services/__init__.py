from . import notification_service
from . import session_service
from . import join_service
from . import chat_service
from . import material_service
from . import chatbot_service

__all__ = [
    "notification_service",
    "session_service",
    "join_service",
    "chat_service",
    "material_service",
    "chatbot_service",
]
