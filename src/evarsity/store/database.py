"""SQLite access for the engine's storage."""

from __future__ import annotations

import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from evarsity.store.models import Base

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextlib import AbstractContextManager

    from sqlalchemy import Engine

MEMORY = ":memory:"

# Seconds a writer waits on another writer's lock before giving up
DEFAULT_BUSY_TIMEOUT = 30.0


def _on_connect(dbapi_connection: Any, _connection_record: object) -> None:
    # Transactions are opened by _on_begin, not by the driver
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _on_begin(connection: Any) -> None:
    connection.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns the SQLAlchemy engine for one SQLite database.

    Every transaction opens with ``BEGIN IMMEDIATE``, so a unit of work holds
    the database write lock from its first statement to commit. Competing
    writers, in this process or another, wait up to ``busy_timeout`` seconds
    and then fail with "database is locked".

    ``:memory:`` databases live on a single shared connection; their
    transactions are serialized with a process-local lock instead.
    """

    def __init__(self, db_path: str = "evarsity.db", busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None
        self._memory_lock: AbstractContextManager[object] = (
            threading.RLock() if db_path == MEMORY else nullcontext()
        )

    @property
    def engine(self) -> Engine:
        """The SQLAlchemy engine, created on first use."""
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        if self.db_path == MEMORY:
            engine = create_engine(
                "sqlite:///:memory:",
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(
                f"sqlite:///{self.db_path}",
                connect_args={"timeout": self.busy_timeout, "check_same_thread": False},
            )
        event.listen(engine, "connect", _on_connect)
        event.listen(engine, "begin", _on_begin)
        return engine

    def _session_factory(self) -> sessionmaker[Session]:
        if self._sessions is None:
            self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._sessions

    def create_tables(self) -> None:
        """Create missing tables; existing ones are left alone."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session for one unit of work.

        Commits when the block exits normally and rolls back on any
        exception, so either every write in the block persists or none does.
        """
        with self._memory_lock, self._session_factory()() as session:
            try:
                yield session
                session.commit()
            except BaseException:
                session.rollback()
                raise

    def is_wal_mode(self) -> bool:
        """True if the database runs with a write-ahead log."""
        with self.engine.connect() as conn:
            return conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._sessions = None
