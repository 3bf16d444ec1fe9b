"""Shared pytest fixtures for bond tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine

from bond.config.models import DatabaseConfig
from bond.database.engine import create_db_engine
from bond.mapper import mapper
from bond.session import Session
from tests.entities import schema


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'bond.db'}"


@pytest.fixture
def db_engine(db_url: str) -> Iterator[Engine]:
    """SQLite engine with the test schema created."""
    engine = create_db_engine(DatabaseConfig(url=db_url))
    schema.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session(db_engine: Engine) -> Iterator[Session]:
    """Engine-bound session that reflects tables on demand."""
    s = Session(db_engine)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def fresh_mapper() -> Iterator[None]:
    """Empty the global metadata cache around a test."""
    mapper.clear()
    yield
    mapper.clear()
