"""Database connection management for the feedback store and job repository."""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Mapping, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .models import Base


logger = logging.getLogger(__name__)


def get_database_url(environ: Optional[Mapping[str, str]] = None) -> str:
    """PostgreSQL URL from the ``POSTGRES_*`` variables, used when no URL is configured."""
    env = os.environ if environ is None else environ
    return "postgresql://{user}:{password}@{host}:{port}/{db}".format(
        user=env.get("POSTGRES_USER", "postgres"),
        password=env.get("POSTGRES_PASSWORD", "postgres"),
        host=env.get("POSTGRES_HOST", "localhost"),
        port=env.get("POSTGRES_PORT", "5432"),
        db=env.get("POSTGRES_DB", "cv_autofill"),
    )


class DatabaseManager:
    """
    Owns the engine and hands out sessions to the stores.

    Either a URL or a ready engine is given; tests pass an in-memory
    SQLite engine so every store shares one connection.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool_size: int = 5,
        echo: bool = False,
        engine: Optional[Engine] = None,
    ):
        self._database_url = database_url or (None if engine is not None else get_database_url())
        self._engine: Optional[Engine] = engine
        self._session_factory: Optional[sessionmaker] = None
        self._pool_size = pool_size
        self._echo = echo

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            if self._database_url.startswith("sqlite"):
                # the job worker threads share the connection
                self._engine = create_engine(
                    self._database_url,
                    echo=self._echo,
                    connect_args={"check_same_thread": False},
                )
            else:
                self._engine = create_engine(
                    self._database_url,
                    pool_size=self._pool_size,
                    echo=self._echo,
                    pool_pre_ping=True,
                )
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            # results outlive their session when stores map them to dataclasses
            self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        return self._session_factory

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Session committed on success and rolled back on any error."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info("Database schema initialized")

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Database health check failed: {e}")
            return False
