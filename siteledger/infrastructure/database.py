"""Database configuration and session management."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def is_sqlite_url(database_url: str) -> bool:
    """Return ``True`` when ``database_url`` targets SQLite."""

    return make_url(database_url).get_backend_name() == "sqlite"


def create_database_engine(database_url: str) -> Engine:
    """Build the SQLAlchemy engine for ``database_url``.

    SQLite connections are shared across the worker threads that run database
    calls, and in-memory databases are pinned to a single connection so every
    session sees the same data.
    """

    if not is_sqlite_url(database_url):
        return create_engine(database_url, pool_pre_ping=True)

    url = make_url(database_url)
    connect_args = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        logger.info("Using an in-memory SQLite database")
        return create_engine(
            database_url, connect_args=connect_args, poolclass=StaticPool
        )
    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Return a session factory bound to ``engine``."""

    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def initialize_database(engine: Engine) -> None:
    """Ensure all ORM models have corresponding database tables."""

    from siteledger.infrastructure import models  # noqa: F401  # ensure models are imported

    Base.metadata.create_all(bind=engine, checkfirst=True)


__all__ = [
    "Base",
    "create_database_engine",
    "create_session_factory",
    "initialize_database",
    "is_sqlite_url",
]
