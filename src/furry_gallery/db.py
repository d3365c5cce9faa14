import logging
import time
from contextlib import contextmanager
from importlib import resources
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
import psycopg2.extras
from fastapi import Request
from psycopg2.pool import ThreadedConnectionPool

from furry_gallery.config import Settings
from furry_gallery.exceptions import UnexpectedError

logger = logging.getLogger(__name__)


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


def _run(cur, query: str, params: Optional[Sequence[Any]]) -> None:
    start = time.perf_counter()
    try:
        cur.execute(query, params or [])
    except psycopg2.Error as e:
        logger.error(f"Error executing query: {e}; query={' '.join(query.split())}")
        raise
    duration_ms = (time.perf_counter() - start) * 1000
    logger.debug(f"Executed query in {duration_ms:.1f}ms, rows={cur.rowcount}: {' '.join(query.split())}")


class Session:
    """Query helpers bound to one connection inside a transaction."""

    def __init__(self, conn):
        self._conn = conn

    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Fetch a single row as a dict, or None."""
        with _dict_cursor(self._conn) as cur:
            _run(cur, query, params)
            row = cur.fetchone()
            return dict(row) if row else None

    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Fetch all rows as dicts."""
        with _dict_cursor(self._conn) as cur:
            _run(cur, query, params)
            return [dict(r) for r in cur.fetchall()]

    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
        with self._conn.cursor() as cur:
            _run(cur, query, params)
            return cur.rowcount

    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        """Execute a statement with RETURNING and return the first row as dict."""
        with _dict_cursor(self._conn) as cur:
            _run(cur, query, params)
            row = cur.fetchone()
            if not row:
                raise UnexpectedError("Expected one row returned, got none.")
            return dict(row)


class Database:
    """
    PostgreSQL access for the application.

    Owns a ThreadedConnectionPool with an explicit lifecycle: `open()` at
    startup, `close()` at shutdown. Every helper runs in its own transaction;
    use `transaction()` to group several statements.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._pool: Optional[ThreadedConnectionPool] = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    # PUBLIC_INTERFACE
    def open(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return
        self._pool = ThreadedConnectionPool(
            minconn=self._settings.db_pool_min,
            maxconn=self._settings.db_pool_max,
            dsn=self._settings.dsn,
        )
        logger.info(
            f"Database pool opened ({self._settings.db_pool_min}-{self._settings.db_pool_max} connections) "
            f"for {self._settings.postgres_host}:{self._settings.postgres_port}/{self._settings.postgres_db}"
        )

    # PUBLIC_INTERFACE
    def close(self) -> None:
        """Close every pooled connection."""
        if self._pool is None:
            return
        self._pool.closeall()
        self._pool = None
        logger.info("Database pool closed")

    @contextmanager
    def _get_conn(self):
        if self._pool is None:
            self.open()
        assert self._pool is not None
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    # PUBLIC_INTERFACE
    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run the enclosed statements on one connection; commit on success, roll back on error."""
        with self._get_conn() as conn:
            try:
                yield Session(conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    # PUBLIC_INTERFACE
    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Fetch a single row as a dict, or None."""
        with self.transaction() as session:
            return session.fetch_one(query, params)

    # PUBLIC_INTERFACE
    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Fetch all rows as dicts."""
        with self.transaction() as session:
            return session.fetch_all(query, params)

    # PUBLIC_INTERFACE
    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
        with self.transaction() as session:
            return session.execute(query, params)

    # PUBLIC_INTERFACE
    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        """Execute a statement with RETURNING and return the first row as dict."""
        with self.transaction() as session:
            return session.execute_returning_one(query, params)

    # PUBLIC_INTERFACE
    def init_schema(self) -> None:
        """Apply the bundled DDL (idempotent CREATE ... IF NOT EXISTS statements)."""
        ddl = resources.files("furry_gallery").joinpath("sql/schema.sql").read_text(encoding="utf-8")
        with self.transaction() as session:
            session.execute(ddl)
        logger.info("Database schema applied")

    # PUBLIC_INTERFACE
    def ping(self) -> Dict[str, Any]:
        """Check connectivity; returns the server time."""
        row = self.fetch_one("SELECT NOW() AS now")
        return {"connected": True, "timestamp": row["now"] if row else None}


# PUBLIC_INTERFACE
def get_db(request: Request) -> Database:
    """FastAPI dependency returning the Database created in the app lifespan."""
    return request.app.state.db
