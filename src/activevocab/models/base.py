"""Base model configuration."""
import sqlite3
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from activevocab.config import settings

# Remote relational store
engine = create_engine(settings.database.url, echo=settings.database.echo)


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enforce foreign keys on SQLite connections."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Declarative base for the remote schema
Base = declarative_base()

# Declarative base for device-local tables (audio cache)
LocalBase = declarative_base()


def utcnow() -> datetime:
    return datetime.now(UTC)


class TimestampMixin:
    """Mixin to add timestamp columns to models."""
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )


def create_session_factory(url: str) -> sessionmaker:
    """Build a session factory for a separate database, creating local tables."""
    from activevocab.models import cache  # noqa: F401

    local_engine = create_engine(url)
    LocalBase.metadata.create_all(bind=local_engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=local_engine)


def init_db() -> None:
    """Initialize database."""
    # Import models so they register on the metadata
    from activevocab.models import remote  # noqa: F401

    Base.metadata.create_all(bind=engine)  # Create tables if they don't exist
