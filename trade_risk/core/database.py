"""Database engine layer for the Trade Risk service.

Provides the sync engine (psycopg2) used by the trade engine, the API and
Alembic migrations. Trade execution relies on row-level locks
(``SELECT ... FOR UPDATE``) and optimistic version counters, both of which
need explicit transaction control, so the session factory is configured
with autoflush=False and expire_on_commit=False.
"""

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings

# ---------------------------------------------------------------------------
# Sync engine (application runtime, Alembic, seeds -- psycopg2)
# ---------------------------------------------------------------------------
sync_engine = create_engine(
    settings.sync_database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    echo=settings.debug,
)

# Sync session factory
sync_session_factory = sessionmaker(
    sync_engine,
    autoflush=False,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency injectors
# ---------------------------------------------------------------------------
def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a database session.

    The session is rolled back on unhandled exceptions and closed when the
    request finishes.
    """
    session = sync_session_factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_sync_session() -> Session:
    """Get a sync session for scripts and migrations.

    Caller is responsible for closing the session::

        session = get_sync_session()
        try:
            ...
        finally:
            session.close()
    """
    return sync_session_factory()
