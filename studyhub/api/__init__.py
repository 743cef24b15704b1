# studyhub/api/__init__.py

from . import admin
from . import auth
from . import chat
from . import chatbot
from . import materials
from . import notification
from . import realtime
from . import session
from . import users

__all__ = [
    "admin",
    "auth",
    "chat",
    "chatbot",
    "materials",
    "notification",
    "realtime",
    "session",
    "users",
]
