"""
Database engine and session handling.

Nothing connects at import time; the engine is built on first use from
DATABASE_URL.
"""

import functools

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inbox_core.settings import get_settings


@functools.lru_cache()
def get_engine():
    """Process-wide engine for the configured DATABASE_URL."""
    return build_engine(get_settings().DATABASE_URL)


def build_engine(database_url: str):
    """
    Create an engine for a URL.

    SQLite connections are shared across threads (FastAPI runs sync routes in
    a threadpool); in-memory SQLite uses a single static connection so every
    session sees the same database.
    """
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            options["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, **options)
    return create_engine(database_url, pool_pre_ping=True, echo=False)


@functools.lru_cache()
def get_sessionmaker():
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db():
    """
    FastAPI dependency yielding one session per request.

    Services commit or roll back themselves; the session is always closed.
    """
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()
