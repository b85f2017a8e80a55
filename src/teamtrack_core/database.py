"""Database connection, session management and the unit-of-work boundary."""
import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from .config import get_settings
from .exceptions import InternalError

logger = logging.getLogger("teamtrack-core.database")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for ``database_url``.

    Pool sizing only applies to server databases; SQLite uses its own pool.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )

    settings = get_settings()
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,          # Verify connections before using
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_recycle=settings.pool_recycle,
        pool_timeout=settings.pool_timeout,
    )


@lru_cache
def get_engine() -> Engine:
    """Return the process-wide engine, created on first use."""
    settings = get_settings()
    return build_engine(settings.database_url, echo=settings.sql_echo)


@lru_cache
def get_session_factory() -> sessionmaker:
    """Return the session factory bound to the process-wide engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function to get database session.

    Yields:
        Session: SQLAlchemy database session
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session, operation: str = "operation") -> Iterator[Session]:
    """
    Run a block of writes as one atomic transaction.

    Commits when the block exits normally. Any exception (including
    cancellation) rolls back every write made inside the block, so a partial
    audit trail never becomes visible. Persistence failures surface as
    InternalError; domain errors propagate unchanged.

    Args:
        db: Database session owned by the caller
        operation: Name used in log messages

    Yields:
        Session: the same session, for convenience
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Persistence failure during {operation}: {e}", exc_info=True)
        raise InternalError(f"{operation} failed") from e
    except BaseException:
        db.rollback()
        raise
