"""Pytest bootstrap for project imports."""

from pathlib import Path
import os
import sys

# Settings are read at import time; give them test values first.
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_NOTIFICATIONS_ENABLED", "false")

# Ensure project root is on sys.path so `import studyhub` works
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import QueuePool, StaticPool  # noqa: E402

from studyhub.database import Base  # noqa: E402
from studyhub.models.user import User  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def file_engine(tmp_path):
    # Real pooled connections, shared across threads.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'studyhub.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
        poolclass=QueuePool,
        pool_size=4,
        max_overflow=0,
        pool_timeout=5,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=file_engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def create_user(db, *, name: str, email: str, role: str = "student", subject=None) -> User:
    user = User(
        name=name,
        email=email,
        password_hash="hash",
        role=role,
        subject=subject,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def student(db_session) -> User:
    return create_user(db_session, name="Asha Student", email="asha@test.edu")


@pytest.fixture
def teacher(db_session) -> User:
    return create_user(
        db_session,
        name="Ravi Teacher",
        email="ravi@test.edu",
        role="teacher",
        subject="Physics",
    )


@pytest.fixture
def requested_date() -> datetime:
    return datetime(2030, 1, 15, 10, 0) + timedelta(days=1)
