"""Persistent metadata store backed by SQLAlchemy and SQLite."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dirstamp.config.exceptions import MissingDatabasePathError

from .errors import StoreError
from .models import (
    ActionKind,
    Base,
    CaptureLogEntry,
    DirectoryRecord,
    FileTimestampRecord,
)

if TYPE_CHECKING:
    from dirstamp.config.models import StoreSettings

LOGGER = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class MetadataStore:
    """Own the engine, connection pool, and transaction scopes for the store."""

    def __init__(
        self,
        database_path: str | Path = MEMORY_DATABASE,
        *,
        busy_timeout_seconds: float = 30.0,
        echo: bool = False,
    ) -> None:
        """Create an engine for the SQLite database at ``database_path``.

        The schema is not created here; call :meth:`initialize` once before
        running any operation against a fresh database.

        Args:
            database_path: Filesystem path of the database file, or
                ``":memory:"`` for a private in-memory database.
            busy_timeout_seconds: How long a connection waits on another
                process's lock before failing.
            echo: Whether SQLAlchemy should log emitted SQL.
        """
        self._database_path = str(database_path)
        connect_args: dict[str, Any] = {"timeout": busy_timeout_seconds}
        engine_kwargs: dict[str, Any] = {}
        if self._database_path == MEMORY_DATABASE:
            # Every session must see the same in-memory database.
            url = "sqlite://"
            connect_args["check_same_thread"] = False
            engine_kwargs["poolclass"] = StaticPool
        else:
            url = f"sqlite:///{Path(self._database_path).expanduser()}"

        LOGGER.debug("Opening metadata store at %s", self._database_path)
        self._engine = create_engine(url, echo=echo, connect_args=connect_args, **engine_kwargs)
        _install_sqlite_hooks(self._engine)
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)
        self._immediate_sessions = sessionmaker(
            self._engine.execution_options(sqlite_begin_immediate=True),
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, settings: StoreSettings) -> MetadataStore:
        """Build a store from resolved configuration.

        Raises:
            MissingDatabasePathError: If no database path is configured.
        """
        if not settings.database_path:
            raise MissingDatabasePathError()
        return cls(
            settings.database_path,
            busy_timeout_seconds=settings.busy_timeout_seconds,
            echo=settings.echo_sql,
        )

    @property
    def database_path(self) -> str:
        """Return the database location this store was opened with."""
        return self._database_path

    @property
    def engine(self) -> Engine:
        """Return the underlying SQLAlchemy engine."""
        return self._engine

    def initialize(self) -> None:
        """Create any missing tables.

        Raises:
            StoreError: If the schema cannot be created.
        """
        if self._database_path != MEMORY_DATABASE:
            Path(self._database_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StoreError("initialize schema", str(exc)) from exc

    @contextmanager
    def transaction(self, step: str, *, immediate: bool = False) -> Iterator[Session]:
        """Yield a session whose work commits together or not at all.

        Args:
            step: Name of the logical step, reported if the store fails.
            immediate: Take the database write lock when the transaction
                starts. Required for steps that read before they write.

        Raises:
            StoreError: If the store raises while running or committing.
        """
        sessions = self._immediate_sessions if immediate else self._sessions
        try:
            with sessions.begin() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(step, str(exc)) from exc

    def close(self) -> None:
        """Release every pooled connection."""
        self._engine.dispose()

    def __enter__(self) -> MetadataStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


def _install_sqlite_hooks(engine: Engine) -> None:
    """Make pysqlite honour SQLAlchemy transaction boundaries.

    The driver's implicit transaction handling is switched off and ``BEGIN`` is
    emitted when SQLAlchemy starts a transaction, so reads and writes in one
    session share a single SQLite transaction. Connections carrying the
    ``sqlite_begin_immediate`` execution option start with ``BEGIN IMMEDIATE``.
    Foreign keys are enforced.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection) -> None:
        if connection.get_execution_options().get("sqlite_begin_immediate"):
            connection.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            connection.exec_driver_sql("BEGIN")


__all__ = [
    "MetadataStore",
    "MEMORY_DATABASE",
    "StoreError",
    "ActionKind",
    "CaptureLogEntry",
    "DirectoryRecord",
    "FileTimestampRecord",
]
