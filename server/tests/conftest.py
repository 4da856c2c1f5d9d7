"""
Pytest configuration and fixtures for the PatentBot test suite.
"""

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app's own engine off the filesystem
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

# Add server directory to Python path
server_dir = Path(__file__).parent.parent
sys.path.insert(0, str(server_dir))

from patentbot.__main__ import app
from patentbot.internal.auth import get_current_user, get_current_user_with_email
from patentbot.internal.db import Base, get_db
from patentbot.models import AIQuestion, PatentSection, PatentSession, PriorArtResult
from patentbot.schemas import AuthUser

TEST_USER = AuthUser(id="user-123", email="inventor@example.com")


@pytest.fixture(scope="session")
def test_db_engine():
    """One in-memory database shared by every connection of the test run."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key constraints for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def db_session(test_db_engine):
    """Create a fresh database session for each test."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Clear all data from tables to ensure isolation (child tables first)
        with test_db_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture
def test_user():
    return TEST_USER


@pytest.fixture
def client(db_session, test_user):
    """Test client wired to the test session and a signed-in user."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: test_user
    app.dependency_overrides[get_current_user_with_email] = lambda: test_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db_session):
    """Test client that goes through the real bearer token check."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def stripe_env(monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.delenv("STRIPE_WEBHOOK_SECRET", raising=False)


@pytest.fixture
def sample_session(db_session, test_user):
    """Create a patent session owned by the test user."""
    session = PatentSession(
        user_id=test_user.id,
        idea_prompt="A self-watering plant pot that measures soil moisture",
        patent_type="utility",
        technical_analysis="Capacitive moisture sensor drives a micro pump",
        patentability_score=0.72,
    )
    db_session.add(session)
    db_session.commit()
    return session


@pytest.fixture
def sample_sections(db_session, sample_session):
    sections = [
        PatentSection(session_id=sample_session.id, section_type="abstract",
                      content="A plant pot with an integrated moisture sensor and reservoir."),
        PatentSection(session_id=sample_session.id, section_type="claims",
                      content="1. A plant pot comprising a reservoir and a moisture sensor."),
        PatentSection(session_id=sample_session.id, section_type="background",
                      content="Houseplants are frequently over- or under-watered."),
    ]
    db_session.add_all(sections)
    db_session.commit()
    return sections


@pytest.fixture
def sample_questions(db_session, sample_session):
    questions = [
        AIQuestion(session_id=sample_session.id, question="What sensor is used?",
                   answer="A capacitive soil moisture probe."),
        AIQuestion(session_id=sample_session.id, question="How is water delivered?", answer=None),
    ]
    db_session.add_all(questions)
    db_session.commit()
    return questions


@pytest.fixture
def sample_prior_art(db_session, sample_session):
    results = [
        PriorArtResult(session_id=sample_session.id, title="Automatic watering device",
                       publication_number="US1234567B2", summary="Timer-based watering.",
                       similarity_score=0.41, overlap_claims=["reservoir"], difference_claims=["no sensor"]),
        PriorArtResult(session_id=sample_session.id, title="Smart planter",
                       publication_number="US7654321B1", summary="Sensor-driven planter.",
                       similarity_score=0.83, overlap_claims=["moisture sensor", "pump"],
                       difference_claims=["no reservoir level detection"]),
    ]
    db_session.add_all(results)
    db_session.commit()
    return results
