"""Database connection and initialization for Splitbench."""

import logging
import os
from pathlib import Path
from typing import Optional

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session as SQLSession

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "workbench.db"

_engine = None


def get_database_url() -> str:
    """Resolve the database URL from DATABASE_URL, DATABASE_PATH or the default file."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    db_path = Path(os.getenv("DATABASE_PATH") or DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def configure_engine(url: Optional[str] = None):
    """Replace the engine singleton, e.g. with an in-memory database."""
    global _engine
    url = url or get_database_url()
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection so every session sees the same memory database
        _engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        _engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
        )
    logger.debug("Database engine configured for %s", url)
    return _engine


def get_engine():
    """Get or create the SQLAlchemy engine singleton."""
    if _engine is None:
        return configure_engine()
    return _engine


def init_db():
    """Initialize the database, creating all tables."""
    from .models import Prompt, Recipe, HistoryRecordRow, HistoryAuditRow  # noqa: F401

    engine = get_engine()
    SQLModel.metadata.create_all(engine)


def get_session() -> SQLSession:
    """Get a new database session."""
    return SQLSession(get_engine())
