from __future__ import annotations

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def _is_memory_sqlite(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:")


def build_engine(db_url: str) -> Engine:
    if not db_url.startswith("sqlite"):
        return create_engine(db_url)
    if _is_memory_sqlite(db_url):
        # One connection shared by every session and thread, otherwise each session
        # would see its own empty database. Statements are serialized on it, so
        # in-memory mode is for tests and single-threaded use only.
        return create_engine(db_url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(db_url, connect_args={"check_same_thread": False})


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Repositories read rows right after commit to build value objects.
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)
