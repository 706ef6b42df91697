"""
Pytest configuration and fixtures

Engine tests run against the in-memory data source in
fixtures/engagement_fixtures.py. SQL and API tests build their own
throwaway SQLite database; nothing touches a shared server.
"""
import pytest
import sys
import os
from datetime import datetime, timezone
from uuid import uuid4

# Settings are read at import time; configure them before any app module loads.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-engagement-analytics-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FORMAT", "text")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.database import Base
from services.engagement_data import CoachContext
from fixtures.engagement_fixtures import InMemoryEngagementSource


# Wednesday; week runs Monday 2024-03-11 .. Sunday 2024-03-17
FIXED_NOW = datetime(2024, 3, 13, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def today(now):
    return now.date()


@pytest.fixture
def source():
    """Empty in-memory engagement data source."""
    return InMemoryEngagementSource()


@pytest.fixture
def coach():
    return CoachContext(coach_id=uuid4(), is_admin=False)


@pytest.fixture
def admin():
    return CoachContext(coach_id=uuid4(), is_admin=True)


@pytest.fixture
def sql_session_factory(tmp_path):
    """
    Session factory bound to a fresh SQLite file.

    A file (not :memory:) so sessions opened on fan-out worker threads
    see the same data.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'engagement.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    yield factory

    engine.dispose()
