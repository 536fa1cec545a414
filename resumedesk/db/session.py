# resumedesk/db/session.py
"""
SQLAlchemy engine + session factory.

`get_db` is the FastAPI dependency; tests override it with a session bound to
an in-memory engine. SQLite connections enable foreign keys so ownership
references are enforced at write time like on Postgres.
"""

from typing import Generator
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from resumedesk.core.config import settings
from resumedesk.db.base import Base

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.lower().startswith("sqlite")


def make_engine(url: str, **kwargs) -> Engine:
    if _is_sqlite(url):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(url, future=True, echo=False, **kwargs)
    if _is_sqlite(url):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def init_db(bind: Engine = None) -> None:
    # import models so they register on Base.metadata
    from resumedesk.db import models  # noqa: F401

    Base.metadata.create_all(bind or engine)
    logger.info("Database tables ensured")


def get_db() -> Generator[Session, None, None]:
    """
    Yields a SQLAlchemy session. Use as dependency:
        db = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
