"""
Database engine and session management.

Provides the declarative Base, the lazily built engine and the FastAPI get_db
dependency.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


class DatabaseManager:
    """Lazily builds the engine and session factory from settings."""

    def __init__(self) -> None:
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            settings = get_settings()
            url = settings.database_url_obj
            kwargs: dict = {"pool_pre_ping": True}
            if url.get_backend_name() == "postgresql":
                kwargs.update(
                    pool_size=settings.database_pool_size,
                    max_overflow=settings.database_max_overflow,
                    connect_args={"application_name": settings.db_app_name},
                )
            self._engine = create_engine(url, **kwargs)
            logger.info("Database engine created for %s", url.get_backend_name())
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                autocommit=False, autoflush=False, bind=self.engine
            )
        return self._session_factory


db_manager = DatabaseManager()


def get_db() -> Iterator[Session]:
    """FastAPI dependency for database sessions."""
    db = db_manager.session_factory()
    try:
        yield db
    finally:
        db.close()
