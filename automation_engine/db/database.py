"""
Database connection and initialization utilities.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from automation_engine.config import get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, echo=echo, **kwargs)


class Database:
    """Engine plus session factory for one database URL."""

    def __init__(self, database_url: str, echo: bool = False):
        self.url = database_url
        self.engine = build_engine(database_url, echo)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def init_db(self):
        """Initialize database - create all tables."""
        from automation_engine.db.models import Base
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database initialized at: {self.url}")

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()


_database: Optional[Database] = None


def get_database() -> Database:
    """Process-wide database built from settings."""
    global _database
    if _database is None:
        settings = get_settings()
        _database = Database(settings.database_url, settings.db_echo)
    return _database


def init_db():
    get_database().init_db()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.
    Use in FastAPI dependencies.
    """
    db = get_database().get_session()
    try:
        yield db
    finally:
        db.close()
