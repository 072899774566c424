"""
Pytest fixtures for the test suite.

Engine tests run against an in-memory SQLite database (one shared connection,
see `authz.db.session.build_engine`) that is thrown away after each test.
Time is controlled through `FrozenClock` so validity windows are exact.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from authz.db.init_db import create_tables
from authz.db.session import build_engine, build_session_factory
from authz.engine import AuthorizationService
from authz.models.directory import Employee
from authz.storage.sql import SqlEmployeeDirectory, sql_uow_factory


TEST_DB_URL = "sqlite://"
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    engine = build_engine(TEST_DB_URL)
    yield engine
    engine.dispose()


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    create_tables(engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return build_session_factory(tables)


@pytest.fixture
def db_session(session_factory):
    """Plain Session for arranging rows directly (bypassing the engine)."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def service(session_factory, clock):
    return AuthorizationService(
        uow_factory=sql_uow_factory(session_factory),
        directory=SqlEmployeeDirectory(session_factory),
        clock=clock,
    )


@pytest.fixture
def add_employee(session_factory):
    """Register subject ids in the identity directory."""

    def _add(*subject_ids: str, is_active: bool = True) -> None:
        with session_factory() as db:
            for subject_id in subject_ids:
                db.add(
                    Employee(
                        id=subject_id,
                        email=f"{subject_id}@example.com",
                        first_name=subject_id,
                        last_name="Test",
                        is_active=is_active,
                    )
                )
            db.commit()

    return _add
