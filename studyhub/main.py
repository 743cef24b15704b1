# studyhub/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyhub.api import admin, auth, chat, chatbot, materials, notification, realtime, session, users
from studyhub.config import settings
from studyhub.database import Base, engine

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

# Initialize FastAPI app
app = FastAPI(title="StudyHub API")

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routers
app.include_router(auth.router)          # /auth/*
app.include_router(users.router)         # /users/*
app.include_router(session.router)       # /sessions/*
app.include_router(notification.router)  # /notifications/*
app.include_router(chat.router)          # /chats/*
app.include_router(realtime.router)      # /ws/*
app.include_router(materials.router)     # /materials/*
app.include_router(chatbot.router)       # /chatbot/*
app.include_router(admin.router)         # /admin/*


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "message": "StudyHub API is running",
        "version": "1.0.0",
    }


logger.info("StudyHub API initialised (env=%s)", settings.APP_ENV)
