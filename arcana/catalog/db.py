"""SQLAlchemy engine and session setup for the catalog database."""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    # Foreign keys are off by default in SQLite; RESTRICT/CASCADE need them.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the catalog database.

    Args:
        database_url: SQLAlchemy database URL (e.g. 'sqlite:///arcana.db')

    Returns:
        Configured Engine
    """
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}

    engine_kwargs = {
        "connect_args": connect_args,
        "pool_pre_ping": True,
    }

    engine = create_engine(database_url, **engine_kwargs)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_pragmas)

    logger.debug(f"Catalog engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Create the tables (if missing) and return a session factory bound to engine.

    Sessions keep loaded attributes after commit so returned rows stay readable
    once the session is closed.
    """
    # Registers the mapped classes on Base.metadata
    from arcana.catalog import models  # noqa: F401

    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
