"""
Database connection management for WorkTrace.

Provides database session management, connection handling, and transaction support.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from worktrace.config import settings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"


def create_db_engine(database_url: str, **engine_kwargs) -> Engine:
    """
    Create an engine for the given URL.

    SQLite connections get foreign key enforcement switched on, since
    sessions and work items must reference an existing workspace, and
    transaction control is taken away from the pysqlite driver so that
    SAVEPOINTs (used by the allocation engine) behave.

    Args:
        database_url: SQLAlchemy database URL
        **engine_kwargs: Extra create_engine() arguments (e.g. poolclass)

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    if database_url.startswith("sqlite"):
        db_engine = create_engine(
            database_url,
            echo=settings.environment == "development",
            connect_args={"check_same_thread": False},
            **engine_kwargs,
        )

        @event.listens_for(db_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):  # pragma: no cover - compat hook
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(db_engine, "begin")
        def _on_begin(conn):  # pragma: no cover - compat hook
            conn.exec_driver_sql("BEGIN")

        return db_engine

    return create_engine(
        database_url,
        echo=settings.environment == "development",
        pool_pre_ping=True,
        **engine_kwargs,
    )


# Create engine instance (singleton pattern)
engine = create_db_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


def get_session() -> Session:
    """
    Get a new database session.

    Returns:
        Session: A new SQLAlchemy session
    """
    return SessionLocal()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database sessions with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Commits on success, rolls back on any exception and re-raises it.

    Yields:
        Session: A SQLAlchemy session

    Example:
        >>> with db_session() as db:
        >>>     workspace = WorkspaceRepository(db).get_by_path("/src/app")
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction() -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction handling.

    Yields:
        Session: A SQLAlchemy session with transaction support
    """
    session = SessionLocal()
    try:
        with session.begin():
            yield session
    finally:
        session.close()


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database:
        return
    if url.database == ":memory:":
        return
    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def init_db(bind: Engine | None = None) -> None:
    """
    Initialize the database schema and record its version.

    Args:
        bind: Engine to initialize (defaults to the configured engine)
    """
    from worktrace.db.repositories.metadata import MetadataRepository
    from worktrace.models.db import Base

    target = bind or engine
    _ensure_sqlite_directory(str(target.url))
    Base.metadata.create_all(bind=target)

    with Session(target) as session:
        MetadataRepository(session).set_value("schema_version", SCHEMA_VERSION)
        session.commit()

    logger.info(f"Database initialized at {target.url.render_as_string(hide_password=True)}")


def check_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with db_session() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
