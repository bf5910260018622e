"""Trackvault - Database engine and the serialized track store.

SQLAlchemy sync engine/session factory for SQLite, wrapped in TrackStore:
an explicitly constructed handle that grants exclusive access to the
database for the duration of each statement group.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from trackvault import config
from trackvault.errors import StoreFailure
from trackvault.models import Base, Track

logger = logging.getLogger(__name__)


def get_database_url(db_path: str | Path | None = None) -> str:
    """Get SQLite database URL.

    Args:
        db_path: Optional path override. Defaults to config.DB_PATH.

    Returns:
        SQLite connection URL string.
    """
    path = db_path if db_path is not None else config.DB_PATH
    return f"sqlite:///{path}"


def create_db_engine(db_path: str | Path | None = None, echo: bool = False) -> Engine:
    """Create SQLAlchemy engine.

    Args:
        db_path: Optional path override for the database file.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    url = get_database_url(db_path)
    return create_engine(
        url,
        echo=echo,
        # The single pooled connection is handed between request threads;
        # TrackStore's lock guarantees only one thread uses it at a time.
        connect_args={"check_same_thread": False},
        pool_size=1,
        max_overflow=0,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        Configured sessionmaker.
    """
    # expire_on_commit=False: rows stay readable after the session closes
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(db_path: str | Path | None = None, echo: bool = False) -> tuple[Engine, sessionmaker]:
    """Initialize the database: create engine, session factory, and all tables.

    This is idempotent - safe to call multiple times.

    Args:
        db_path: Optional path override for the database file.
        echo: If True, log all SQL statements.

    Returns:
        Tuple of (engine, SessionFactory).
    """
    engine = create_db_engine(db_path, echo=echo)
    SessionFactory = create_session_factory(engine)

    Base.metadata.create_all(engine)

    return engine, SessionFactory


class TrackStore:
    """Exclusive-access wrapper around the tracks table.

    Every public method acquires the store lock, runs its statements in a
    fresh session and releases the lock before returning. Database errors
    surface as StoreFailure.
    """

    def __init__(self, engine: Engine, session_factory: sessionmaker):
        self._engine = engine
        self._session_factory = session_factory
        self._lock = threading.Lock()

    @classmethod
    def open(cls, db_path: str | Path | None = None, echo: bool = False) -> TrackStore:
        """Initialize the database at db_path and return a store for it."""
        engine, SessionFactory = init_db(db_path, echo=echo)
        return cls(engine, SessionFactory)

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        """Dispose the engine and its pooled connection."""
        with self._lock:
            self._engine.dispose()

    @contextmanager
    def transaction(self, operation: str) -> Iterator[Session]:
        """Hold the store lock around one unit of work.

        Commits when the block exits normally and rolls back otherwise.
        Non-database exceptions raised inside the block propagate unchanged.

        Args:
            operation: Short description used in logs and StoreFailure.

        Yields:
            An open Session.

        Raises:
            StoreFailure: If any statement or the commit fails.
        """
        with self._lock:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error("Store %s failed: %s", operation, e)
                raise StoreFailure(operation, str(e)) from e
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    def add_track(
        self,
        artist: str,
        title: str,
        file_path: str,
        demo_id: str,
        user_id: str,
    ) -> Track:
        """Insert one track row and commit it."""
        track = Track(
            artist=artist,
            title=title,
            file_path=file_path,
            demo_id=demo_id,
            user_id=user_id,
        )
        with self.transaction("insert") as session:
            session.add(track)
        return track

    def list_tracks_for_user(self, user_id: str) -> list[Track]:
        """Return all tracks owned by user_id, in storage order."""
        stmt = select(Track).where(Track.user_id == user_id).order_by(Track.id)
        with self.transaction("select") as session:
            return list(session.execute(stmt).scalars().all())

    def get_track_by_demo_id(self, demo_id: str) -> Track | None:
        """Return the track with this demo id, or None."""
        stmt = select(Track).where(Track.demo_id == demo_id)
        with self.transaction("select") as session:
            return session.execute(stmt).scalar_one_or_none()

    def delete_tracks_by_file_path(self, file_path: str) -> int:
        """Delete every row referencing file_path.

        Returns:
            Number of rows removed (0 is not an error).
        """
        stmt = delete(Track).where(Track.file_path == file_path)
        with self.transaction("delete") as session:
            result = session.execute(stmt)
            return result.rowcount or 0


__all__ = [
    "TrackStore",
    "create_db_engine",
    "create_session_factory",
    "get_database_url",
    "init_db",
]
