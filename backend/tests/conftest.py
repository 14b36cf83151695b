"""
Pytest configuration and fixtures for Next Market backend tests.

Tests run against an in-memory SQLite database and the in-memory blob store,
so no PostgreSQL or MinIO instance is needed.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from nextmarket.config import Settings
from nextmarket.database import Organization, create_session_factory, create_tables
from nextmarket.storage.memory import InMemoryBlobStore


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        storage_backend="memory",
        default_retention=10,
        icon_url_prefix="/api/v1/files",
        presign_ttl_seconds=3600,
    )


@pytest.fixture
def engine():
    """Single-connection in-memory SQLite engine with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory) -> Session:
    """Database session closed after the test."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore("test-bucket")


@pytest.fixture
def publisher(db_session) -> Organization:
    """Publisher organization for uploads."""
    org = Organization(name="Test Publisher", openfga_id="org_test_001")
    db_session.add(org)
    db_session.commit()
    return org
