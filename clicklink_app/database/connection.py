"""
Database handle for the URL shortener.

A single `Database` is built once at startup (see `main.create_app`) and
passed to whatever needs sessions. There is no module-level engine, so tests
and workers can each open their own handle against any database URL.
"""

import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def _enable_sqlite_pragmas(dbapi_conn, connection_record):
    """Foreign keys drive the cascade contract; WAL lets readers run during writes."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


class Database:
    """
    Owns the SQLAlchemy engine and session factory.

    Lifecycle:
    - create_all() once at startup
    - session() per request / per unit of work
    - dispose() at shutdown
    """

    def __init__(self, database_url: str, busy_timeout: int = 30, echo: bool = False):
        self.database_url = database_url
        self.is_sqlite = database_url.startswith("sqlite")

        connect_args = {}
        if self.is_sqlite:
            connect_args = {"check_same_thread": False, "timeout": busy_timeout}

        self.engine: Engine = create_engine(
            database_url,
            connect_args=connect_args,
            pool_pre_ping=True,
            echo=echo,
        )

        if self.is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_pragmas)

        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )

    def create_all(self) -> None:
        # Import models to ensure they're registered with Base
        from clicklink_app import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables ready (%s)", self.engine.url.render_as_string(hide_password=True))

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency: one session per request from the app's Database."""
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
