from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from adonai.config import Settings
from adonai.models import Base

logger = logging.getLogger(__name__)


class Database:
    """Engine plus session factory for the Supabase Postgres store."""

    def __init__(self, engine: Engine, create_all: bool = False) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
        if create_all:
            Base.metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str, create_all: bool = False) -> "Database":
        """Create engine using SQLAlchemy's ``create_engine``."""
        kwargs: dict[str, Any] = {"future": True}
        if not url.startswith("sqlite"):
            kwargs.update(
                pool_size=10,
                max_overflow=5,
                pool_recycle=300,
                pool_pre_ping=True,
            )
        engine = create_engine(url, **kwargs)
        if engine.dialect.name == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        logger.info("Database engine created (dialect=%s)", engine.dialect.name)
        return cls(engine, create_all=create_all)

    @classmethod
    def from_settings(cls, cfg: Settings) -> "Database | None":
        if not cfg.database_url:
            return None
        return cls.from_url(cfg.database_url, create_all=cfg.db_create_all)

    def session(self) -> Session:
        return self._session_factory()

    def dispose(self) -> None:
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    # ON DELETE CASCADE on messages needs this for local SQLite runs
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
