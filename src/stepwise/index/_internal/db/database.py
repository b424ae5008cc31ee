"""SQLite engine for the workshop index.

``Database`` owns the engine and hands out ORM sessions for reads and
``BulkWriter`` blocks for batched Core statements. Each ``bulk_writer()``
block is one transaction; nothing spans two blocks (see ``writer.py``).
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import and_, event
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, SQLModel, create_engine

if TYPE_CHECKING:
    from sqlalchemy import Engine, Table

log = structlog.get_logger(__name__)

_LOCKED_MARKERS = ("database is locked", "database is busy")
_MAX_LOCK_DELAY_SEC = 2.0


def _is_locked(error: OperationalError) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _LOCKED_MARKERS)


def _casefold(value: Any) -> Any:
    return value.casefold() if isinstance(value, str) else value


def _prepare_connection(dbapi_conn: Any, busy_timeout_ms: int) -> None:
    # SQLite lower() folds ASCII only; keyword search compares with casefold().
    dbapi_conn.create_function("casefold", 1, _casefold, deterministic=True)
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()


class Database:
    """SQLite (WAL) store holding workshops, sections, chunks and runs.

    Opening a bulk writer retries with exponential backoff while SQLite
    reports the file as locked by another writer.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        max_retries: int = 3,
        retry_base_delay: float = 0.1,
        busy_timeout_ms: int = 30_000,
    ) -> None:
        self.db_path = Path(db_path)
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )

        @event.listens_for(self.engine, "connect")
        def _on_connect(dbapi_conn: Any, _record: Any) -> None:
            _prepare_connection(dbapi_conn, busy_timeout_ms)

    def create_all(self) -> None:
        """Create every index table that does not exist yet."""
        from stepwise.index import models  # noqa: F401

        SQLModel.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        with Session(self.engine) as session:
            yield session

    @contextmanager
    def bulk_writer(self) -> Generator[BulkWriter, None, None]:
        """Transaction for batched statements.

        Commits when the block exits cleanly and rolls back on any exception,
        which is re-raised.
        """
        writer = self._open_writer()
        try:
            yield writer
            writer.commit()
        except Exception:
            writer.rollback()
            raise
        finally:
            writer.close()

    def _open_writer(self) -> BulkWriter:
        attempt = 0
        while True:
            try:
                return BulkWriter(self.engine)
            except OperationalError as e:
                if not _is_locked(e) or attempt >= self._max_retries:
                    raise
                delay = min(self._retry_base_delay * 2**attempt, _MAX_LOCK_DELAY_SEC)
                attempt += 1
                log.warning(
                    "sqlite_locked_retry",
                    db_path=str(self.db_path),
                    attempt=attempt,
                    max_retries=self._max_retries,
                    delay_sec=delay,
                )
                time.sleep(delay)


class BulkWriter:
    """Core SQL statements on one connection and transaction.

    Row filters are column equality only: ``delete_matching(IndexedStep,
    workshop_slug="demo")``. No filter matches every row.
    """

    def __init__(self, engine: Engine) -> None:
        self.conn = engine.connect()
        self.transaction = self.conn.begin()

    @staticmethod
    def _table(model: type[SQLModel]) -> Table:
        return model.__table__  # type: ignore[attr-defined,no-any-return]

    def _where(self, table: Table, equals: dict[str, Any]) -> Any:
        return and_(*(table.c[column] == value for column, value in equals.items()))

    def insert_many(self, model: type[SQLModel], rows: list[dict[str, Any]]) -> int:
        """Insert rows in one executemany. Returns the number of rows."""
        if not rows:
            return 0
        self.conn.execute(self._table(model).insert(), rows)
        return len(rows)

    def delete_matching(self, model: type[SQLModel], **equals: Any) -> int:
        """Delete rows whose columns equal the given values. Returns rows removed."""
        table = self._table(model)
        stmt = table.delete()
        if equals:
            stmt = stmt.where(self._where(table, equals))
        return int(self.conn.execute(stmt).rowcount)

    def update_matching(self, model: type[SQLModel], values: dict[str, Any], **equals: Any) -> int:
        """Set ``values`` on rows whose columns equal the given values."""
        table = self._table(model)
        stmt = table.update().values(**values)
        if equals:
            stmt = stmt.where(self._where(table, equals))
        return int(self.conn.execute(stmt).rowcount)

    def commit(self) -> None:
        self.transaction.commit()

    def rollback(self) -> None:
        self.transaction.rollback()

    def close(self) -> None:
        self.conn.close()
