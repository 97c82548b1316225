"""Engine and session factory setup."""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from common.logging import LoggingManager
from repotracker.models.base import Base

# Imported for their table definitions.
from repotracker.models import tracked_project, user  # noqa: F401

logger = LoggingManager.get_logger('app.db')


def make_engine(database_url: str, create_tables: bool = True) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    logger.info("Initializing database connection")
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)
    if create_tables:
        Base.metadata.create_all(engine)  # Creates tables if they don't exist
    return engine


def make_session_factory(engine: Optional[Engine] = None, database_url: Optional[str] = None) -> sessionmaker:
    if engine is None:
        if database_url is None:
            raise ValueError("Either an engine or a database URL is required")
        engine = make_engine(database_url)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
