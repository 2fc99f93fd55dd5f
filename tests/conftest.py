"""
Global pytest fixtures and configuration for test suite.

This module provides reusable fixtures for:
- Database engines and session factories (in-memory and file-backed SQLite)
- A controllable clock
- Sample journal documents
- A mocked generation oracle
"""

import copy
import os
import sys
from datetime import datetime, timedelta
from typing import Callable, Generator, List
from unittest.mock import Mock

import pytest
import structlog
from sqlalchemy.orm import sessionmaker

from reflective_prompts.config import Settings, settings
from reflective_prompts.generation.oracle import GenerationOracle, OracleResponse
from reflective_prompts.models.documents import Document
from reflective_prompts.storage.database import (
    build_engine,
    create_all_tables,
    drop_all_tables,
    reset_engine,
)


VALID_INSIGHT = {
    "summary": "Work pressure and quiet moments of gratitude shaped your weeks.",
    "description": (
        "You wrote about deadlines at work several times and how they pushed your evenings "
        "late. In 'Monday rush' you named the stress directly, and in 'Park walk' you noticed "
        "how much lighter you felt after stepping away."
    ),
    "themes": [
        {
            "name": "Deadline pressure at work",
            "icon": "⏰",
            "explanation": "Deadlines came up in most entries and set the tone of your days.",
            "frequency": "3 times this week",
            "source_entries": [{"date": "2026-02-10", "title": "Monday rush"}],
        },
        {
            "name": "Restorative walks outside",
            "icon": "🌳",
            "explanation": "Time outdoors is where you reset.",
            "frequency": "2 times this week",
            "source_entries": [{"date": "2026-02-11", "title": "Park walk"}],
        },
    ],
    "annotations": [{"date": "2026-02-11", "summary": "You chose a walk over answering email."}],
}


class FakeClock:
    """Callable clock returning naive UTC; advance() moves it forward."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> datetime:
        self.now = self.now + delta
        return self.now


@pytest.fixture
def mock_settings() -> Settings:
    """
    Create settings for testing with safe defaults.

    Returns:
        Settings instance with test configuration
    """
    return Settings(
        database_url="sqlite://",
        log_level="INFO",
        log_json=False,  # Easier to read in tests
    )


@pytest.fixture
def fixed_timestamp() -> datetime:
    """
    Provide fixed timestamp for deterministic testing.

    Returns:
        Fixed naive UTC datetime for reproducible tests
    """
    return datetime(2026, 2, 12, 10, 30, 0)


@pytest.fixture
def clock(fixed_timestamp) -> FakeClock:
    """Clock starting at fixed_timestamp."""
    return FakeClock(fixed_timestamp)


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    """
    In-memory SQLite session factory with all tables created.

    Yields:
        sessionmaker bound to a fresh database
    """
    engine = build_engine("sqlite://")
    create_all_tables(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    drop_all_tables(engine)
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """
    File-backed SQLite session factory for tests that use worker threads.

    Yields:
        sessionmaker bound to a database in tmp_path
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'reflective_prompts.db'}")
    create_all_tables(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    drop_all_tables(engine)
    engine.dispose()


@pytest.fixture
def default_database(monkeypatch) -> Generator[None, None, None]:
    """
    Point the global engine singleton at a fresh in-memory database.

    For code paths that fall back to get_session_factory() when no session
    factory is passed.
    """
    monkeypatch.setattr(settings, "database_url", "sqlite://")
    reset_engine()
    create_all_tables()
    yield
    drop_all_tables()
    reset_engine()


@pytest.fixture
def make_document(fixed_timestamp) -> Callable[..., Document]:
    """
    Factory for journal documents created relative to fixed_timestamp.

    Returns:
        Callable(text, user_id="u1", hours_ago=1, ...) -> Document
    """
    counter = {"n": 0}

    def _make(
        text: str,
        user_id: str = "u1",
        hours_ago: float = 1,
        title: str = "",
        is_follow_up: bool = False,
    ) -> Document:
        counter["n"] += 1
        return Document(
            document_id=f"doc-{counter['n']:03d}",
            user_id=user_id,
            text=text,
            title=title,
            created_at=fixed_timestamp - timedelta(hours=hours_ago),
            is_follow_up=is_follow_up,
        )

    return _make


@pytest.fixture
def stress_documents(make_document) -> List[Document]:
    """Three entries about work stress and deadlines."""
    return [
        make_document("I feel stressed about work deadlines", title="Monday rush", hours_ago=50),
        make_document(
            "Another deadline at work today, the pressure keeps building and I worry constantly",
            title="Pressure",
            hours_ago=26,
        ),
        make_document(
            "Managed the stress better by taking a walk after the team meeting",
            title="Park walk",
            hours_ago=2,
        ),
    ]


@pytest.fixture
def valid_insight() -> dict:
    """A fresh copy of a valid oracle insight payload."""
    return copy.deepcopy(VALID_INSIGHT)


@pytest.fixture
def mock_oracle() -> Mock:
    """
    Generation oracle mock returning a valid insight payload.

    Returns:
        Mock with GenerationOracle spec
    """
    oracle = Mock(spec=GenerationOracle)
    oracle.generate.return_value = OracleResponse(
        content=VALID_INSIGHT,
        model="gpt-4o-mini",
        provider="openai",
        tokens_input=900,
        tokens_output=400,
        tokens_total=1300,
        latency_ms=1200,
        documents_sent=3,
    )
    return oracle


@pytest.fixture(autouse=True)
def reset_env_vars():
    """
    Reset environment variables before each test.

    This prevents test pollution from env var changes.
    """
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


def pytest_configure(config):
    """
    Configure pytest with custom markers and settings.
    """
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (service, CLI, end-to-end)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow tests that may take longer to run"
    )
    # Keep stdout free of log lines so CLI output can be parsed
    structlog.configure(
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
