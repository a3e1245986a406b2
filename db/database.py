"""
Database engine, session management, and initialization.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Generator, Optional
import logging

from config.settings import settings
from db.models import Base

logger = logging.getLogger(__name__)


def make_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Build an engine for `url` (defaults to settings.DATABASE_URL).
    In-memory SQLite is pinned to a single shared connection so every
    session and thread sees the same database.
    """
    url = url or settings.DATABASE_URL
    echo = settings.DEBUG if echo is None else echo
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database initialized.")


@contextmanager
def get_db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager for database sessions."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
