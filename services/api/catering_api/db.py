"""Engine and session factory. Created lazily so tests can bind their own engine."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .settings import settings


class Base(DeclarativeBase):
    pass


_engine = None
_session_factory = None


def init_engine(database_url: str | None = None):
    global _engine, _session_factory
    _engine = create_engine(database_url or settings.database_url, pool_pre_ping=True)
    # Services flush explicitly before queries that must see pending rows
    _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine


def session_factory() -> sessionmaker:
    if _session_factory is None:
        init_engine()
    return _session_factory


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back on error."""
    db = session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db():
    db = session_factory()()
    try:
        yield db
    finally:
        db.close()
