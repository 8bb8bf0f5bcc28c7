"""
Database configuration and session management.

The dashboard keeps a small SQLite database for its own state (Prowlarr
integration settings, indexer cache, sync history, backup metadata and the
dashboard login). The daemon's configuration never lives here.
"""

import os
from collections.abc import Generator
from typing import Any

import structlog
from sqlalchemy import create_engine, event, pool, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from crossseed_ui.config import settings

logger = structlog.get_logger()

# SQLAlchemy Base for models
Base = declarative_base()


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
    """
    Set SQLite PRAGMA settings on every new connection.

    - busy_timeout so the scheduler and request handlers wait on each other
    - foreign keys on
    - WAL journal for concurrent readers (skipped for in-memory databases)
    """
    cursor = dbapi_conn.cursor()

    try:
        cursor.execute("PRAGMA busy_timeout = 5000")
        cursor.execute("PRAGMA foreign_keys = ON")

        result = cursor.execute("PRAGMA database_list").fetchall()
        is_memory = any(row[2] in (":memory:", "") for row in result)
        if not is_memory:
            cursor.execute("PRAGMA journal_mode = WAL")

        logger.debug("sqlite_pragma_set", connection_id=id(dbapi_conn))

    except Exception as e:
        logger.error("failed_to_set_sqlite_pragma", error=str(e))
        raise
    finally:
        cursor.close()


def _sqlite_file_path(database_url: str) -> str | None:
    """Return the on-disk path for a file-backed sqlite URL, else None."""
    if not database_url.startswith("sqlite:///"):
        return None
    path = database_url.replace("sqlite:///", "", 1)
    if not path or path == ":memory:":
        return None
    return os.path.abspath(path)


def create_database_engine(database_url: str | None = None) -> Engine:
    """
    Create and configure the SQLAlchemy engine.

    Args:
        database_url: Override for ``settings.database_url`` (tests)

    Raises:
        RuntimeError: If the engine cannot be created
    """
    database_url = database_url or settings.database_url

    try:
        db_path = _sqlite_file_path(database_url)
        if db_path:
            os.makedirs(os.path.dirname(db_path), exist_ok=True)

        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=pool.StaticPool if db_path is None else pool.QueuePool,
            echo=False,
            hide_parameters=settings.environment == "production",
        )

        logger.info(
            "database_engine_created",
            environment=settings.environment,
            in_memory=db_path is None,
        )

        return engine

    except Exception as e:
        logger.error("failed_to_create_database_engine", error=str(e))
        raise RuntimeError(f"Failed to create database engine: {e}") from e


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Prevent lazy loading issues
    )


# Global engine and session factory (lazy initialization)
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """
    Get or create the database engine instance.

    Lazy so that tests can import the module without touching the disk.
    """
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function for FastAPI to get a database session.

    Example:
        @router.get("/history")
        def history(db: Session = Depends(get_db)):
            return db.query(ProwlarrSyncHistory).all()
    """
    session_factory = get_session_factory()
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Create all tables.

    Raises:
        RuntimeError: If database initialization fails
    """
    try:
        # Import all models to ensure they're registered with Base
        from crossseed_ui.models import (  # noqa: F401
            AutobrrConfig,
            ConfigBackup,
            ProwlarrConfig,
            ProwlarrIndexer,
            ProwlarrSyncHistory,
            User,
        )

        Base.metadata.create_all(bind=get_engine())
        logger.info("database_initialized")

    except Exception as e:
        logger.error("failed_to_initialize_database", error=str(e))
        raise RuntimeError(f"Failed to initialize database: {e}") from e


def close_db() -> None:
    """Dispose of the engine. Called on application shutdown."""
    global _engine, _session_factory
    try:
        if _engine is not None:
            _engine.dispose()
            logger.info("database_connections_closed")
    except Exception as e:
        logger.error("failed_to_close_database", error=str(e))
    finally:
        _engine = None
        _session_factory = None


def database_health_check() -> dict[str, Any]:
    """Run ``SELECT 1`` and report healthy/unhealthy."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "healthy"}

    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
