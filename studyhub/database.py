# studyhub/database.py - Database Configuration
import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from studyhub.config import settings

logger = logging.getLogger(__name__)

# Database URL loaded from .env via studyhub/config.py
DATABASE_URL = settings.DATABASE_URL


def _create_engine(url: str):
    if str(url).startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory DB.
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


# Create engine (with local fallback when postgres driver is unavailable)
try:
    engine = _create_engine(DATABASE_URL)
except ModuleNotFoundError as exc:  # pragma: no cover - environment fallback
    if "psycopg2" not in str(exc):
        raise
    fallback_url = os.getenv("FALLBACK_DATABASE_URL", "sqlite:///./studyhub.db")
    logger.warning("Postgres driver missing, falling back to %s", fallback_url)
    engine = _create_engine(fallback_url)

# Session maker
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


# Dependency to get database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Live feeds open one short session per unit of work instead of holding one
def get_session_factory():
    return SessionLocal
