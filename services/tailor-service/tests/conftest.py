"""
Shared fixtures for tailor-service tests.

Unit tests run without a database: SQL is compiled against the PostgreSQL
dialect and sessions are mocks. Tests marked with the `pg_url` fixture run
against a real PostGIS database named by TAILOR_TEST_DB and are skipped
otherwise.
"""

import os
from collections import namedtuple
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.models import Tailor

SearchRow = namedtuple("SearchRow", ["Tailor", "distance_km", "total"])
PlainRow = namedtuple("PlainRow", ["Tailor", "total"])


class NestedTransaction:
    """Stand-in for session.begin_nested(): lets exceptions propagate."""

    def __init__(self):
        self.entered = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


def compile_pg(stmt):
    compiled = stmt.compile(dialect=postgresql.dialect())
    return str(compiled), compiled.params


def scalar_result(value: Any) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


def rowcount_result(count: int) -> MagicMock:
    result = MagicMock()
    result.rowcount = count
    return result


def rows_result(rows: list) -> MagicMock:
    result = MagicMock()
    result.all.return_value = rows
    return result


@pytest.fixture
def mock_session() -> MagicMock:
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.begin_nested = MagicMock(return_value=NestedTransaction())
    return session


@pytest.fixture
def make_tailor():
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def _make(tailor_id: int, **overrides) -> Tailor:
        values = {
            "id": tailor_id,
            "email": f"tailor{tailor_id}@example.com",
            "full_name": f"Tailor {tailor_id}",
            "skills": ["ALTERATIONS"],
            "rating": 4.0,
            "review_count": 3,
            "years_experience": 10,
            "created_at": base + timedelta(days=tailor_id),
        }
        values.update(overrides)
        return Tailor(**values)

    return _make


@pytest.fixture
def pg_url() -> str:
    url = os.getenv("TAILOR_TEST_DB")
    if not url:
        pytest.skip("TAILOR_TEST_DB not set; PostGIS integration tests skipped")
    return url
