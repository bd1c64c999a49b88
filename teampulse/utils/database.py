"""Engine and session handling for the activity store.

One engine and one scoped session factory exist per process. Transformer
runs and Celery tasks open their own sessions from it; tests pass their own
``session_factory`` instead.
"""
import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, scoped_session

from config.settings import settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory = None

SQLITE_MEMORY = ":memory:"


def engine_options(db_url: str) -> Dict[str, Any]:
    """Keyword arguments for create_engine, per backend.

    SQLite gets no pool sizing (it does not support it) and is shared
    across the Celery worker threads. Server databases get a small pool
    with pre-ping, since transform runs can sit idle for the whole beat
    interval.
    """
    if db_url.startswith("sqlite"):
        return {"echo": False, "connect_args": {"check_same_thread": False}}
    return {
        "echo": False,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def _sqlite_file(db_url: str) -> Optional[str]:
    path = db_url.split(":///", 1)[-1] if ":///" in db_url else ""
    if not path or path == SQLITE_MEMORY:
        return None
    return path


def get_engine() -> Engine:
    """Process-wide engine for ``settings.agent.database_url``."""
    global _engine
    if _engine is not None:
        return _engine

    db_url = settings.agent.database_url
    if db_url.startswith("sqlite"):
        path = _sqlite_file(db_url)
        directory = os.path.dirname(path) if path else ""
        if directory:
            os.makedirs(directory, exist_ok=True)

    _engine = create_engine(db_url, **engine_options(db_url))
    logger.info(f"Database engine ready ({_engine.dialect.name})")
    return _engine


def get_session_factory():
    """Scoped session factory bound to the process-wide engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = scoped_session(sessionmaker(bind=get_engine()))
    return _session_factory


def get_session():
    return get_session_factory()()


def close_session(session) -> None:
    """Close a session, logging instead of raising if the connection is gone."""
    try:
        session.close()
    except Exception as e:
        logger.warning(f"Error closing session: {e}")


@contextmanager
def session_scope(session_factory=None):
    """Commit on success, roll back and re-raise on error, always close.

    Args:
        session_factory: Callable returning a Session; defaults to the
            process-wide scoped factory
    """
    session = session_factory() if session_factory is not None else get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        close_session(session)


def init_database(engine=None) -> bool:
    """Create every table registered on ``teampulse.models.Base``.

    Production schemas are managed by alembic; this is for local setups
    and the ``init-db`` command.
    """
    from teampulse.models import Base

    Base.metadata.create_all(engine or get_engine())
    logger.info("Database tables created/verified")
    return True


def cleanup_connections() -> None:
    """Drop the scoped sessions and dispose the engine (worker shutdown)."""
    global _engine, _session_factory

    if _session_factory is not None:
        try:
            _session_factory.remove()
        except Exception as e:
            logger.warning(f"Error removing scoped sessions: {e}")
        _session_factory = None

    if _engine is not None:
        try:
            _engine.dispose()
        except Exception as e:
            logger.warning(f"Error disposing database engine: {e}")
        _engine = None

    logger.info("Database connections cleaned up")
