"""
Pytest configuration and fixtures.
"""

import os
from datetime import datetime, timedelta

import pytest

# Set test environment before post_lifecycle.database is imported
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from fabricators import Fabricator  # noqa: E402
from post_lifecycle.config import LifecycleConfig  # noqa: E402
from post_lifecycle.database import Base, init_db  # noqa: E402
from post_lifecycle.services.clock import FrozenClock  # noqa: E402
from post_lifecycle.services.jobs import DatabaseJobQueue  # noqa: E402
from post_lifecycle.services.lifecycle import PostDestroyer  # noqa: E402

NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """Session configured like SessionLocal."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def config():
    """Stubs are kept for 24 hours."""
    return LifecycleConfig(stub_retention_window=timedelta(hours=24))


@pytest.fixture
def fab(db, clock):
    return Fabricator(db, clock)


@pytest.fixture
def destroyer(db, config, clock):
    """Build a PostDestroyer wired to the test session, config and clock."""

    def make(actor, post, **kwargs):
        kwargs.setdefault("config", config)
        kwargs.setdefault("clock", clock)
        return PostDestroyer(db, actor, post, **kwargs)

    return make


@pytest.fixture
def job_queue(db):
    return DatabaseJobQueue(db)
