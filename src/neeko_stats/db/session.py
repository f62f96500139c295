"""Database session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from neeko_stats.config import settings
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


def build_engine(url: str) -> Engine:
    """Create an engine with pool settings suited to the backend."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


# Create engine
engine = build_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker = None) -> Generator[Session, None, None]:
    """Provide a transactional scope for database operations.

    Args:
        factory: Session factory to use (defaults to ``SessionLocal``)

    Yields:
        SQLAlchemy session

    Example:
        with session_scope() as session:
            session.add(obj)
            # Will auto-commit on success or rollback on error
    """
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error("Database error: %s", e)
        raise
    finally:
        session.close()


def init_db(bind: Engine = None) -> None:
    """Initialize database tables.

    Note: tables are created from the ORM metadata; there is no
    migration history.
    """
    from neeko_stats.db import models  # noqa: F401  (registers tables)
    from neeko_stats.db.base import Base

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created successfully")


def drop_db(bind: Engine = None) -> None:
    """Drop all database tables.

    Warning: This will delete all data!
    """
    from neeko_stats.db import models  # noqa: F401
    from neeko_stats.db.base import Base

    Base.metadata.drop_all(bind=bind or engine)
    logger.warning("Database tables dropped")
