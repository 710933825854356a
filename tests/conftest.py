"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database with the full schema, a session
factory bound to it, and builders for import records.

SQLite stands in for PostgreSQL here; JSON columns fall back to plain JSON
and the per-record statement timeout is skipped on non-PostgreSQL dialects.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models as _models  # noqa: F401 registers all ORM models on Base.metadata
from app.config import ContentImportSettings
from app.domain.content_import import OperatorContext, SourceDescriptor
from app.services.content_import_service import ContentImportService
from db.base import Base
from db.session import build_session_factory


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def operator() -> OperatorContext:
    return OperatorContext(
        actor_id="admin-1",
        actor_name="Ada Admin",
        ip_address="10.0.0.5",
        user_agent="pytest",
    )


@pytest.fixture()
def source() -> SourceDescriptor:
    return SourceDescriptor(file_name="questions.json", file_kind="json")


@pytest.fixture()
def settings() -> ContentImportSettings:
    return ContentImportSettings(chunk_pause_seconds=0.0, record_timeout_ms=0)


@pytest.fixture()
def service(session_factory: sessionmaker[Session], settings: ContentImportSettings) -> ContentImportService:
    return ContentImportService(session_factory=session_factory, settings=settings)


def make_record(
    *,
    module_id: Any = 3,
    micro_skill_id: Any = 7,
    question_code: str | None = None,
    text: str = "What is 2 + 2?",
    **overrides: Any,
) -> dict[str, Any]:
    """
    Build a raw record that passes the default shape rules.
    """

    record: dict[str, Any] = {
        "module_id": module_id,
        "micro_skill_id": micro_skill_id,
        "question_data": {
            "text": text,
            "type": "numerical_input",
            "correct_answer": 4,
            "solution_steps": [{"step": 1, "action": "Add", "calculation": "2 + 2", "result": 4}],
            "hints": [{"level": 1, "text": "Count on your fingers"}],
        },
        "metadata": {
            "difficulty_level": 2,
            "expected_time_seconds": 30,
            "points": 1,
            "tags": ["arithmetic"],
        },
    }
    if question_code is not None:
        record["question_code"] = question_code
    record.update(overrides)
    return record


@pytest.fixture()
def record_factory():
    return make_record
