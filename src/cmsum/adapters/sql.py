"""SQLAlchemy database adapter.

Provides ``SqlAlchemyAdapter``, a synchronous implementation of the
``DatabaseClient`` protocol over a pooled SQLAlchemy engine. The same
adapter drives MySQL (PyMySQL), PostgreSQL (psycopg) and, in tests,
SQLite.

Usage:
    from cmsum.adapters.sql import SqlAlchemyAdapter, create_engine_pooled

    adapter = SqlAlchemyAdapter(create_engine_pooled(descriptor.url))
    tables = adapter.list_tables()
    adapter.close()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Connection, Engine, create_engine, inspect, text
from sqlalchemy.engine import URL


def create_engine_pooled(
    database_url: str | URL,
    connect_timeout: int = 10,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with connection pooling.

    Default pool settings:

    - ``pool_size=5``: One invocation rarely needs more than one.
    - ``max_overflow=10``: Allow burst connections.
    - ``pool_pre_ping=True``: Validate connections before checkout.
    - ``pool_recycle=300``: Recycle connections every 5 minutes.

    Args:
        database_url: SQLAlchemy URL (``mysql+pymysql://`` or
            ``postgresql+psycopg://``).
        connect_timeout: Seconds before the driver gives up connecting.
        **kwargs: Additional keyword arguments forwarded to
            ``create_engine``; they override the defaults.

    Returns:
        Configured ``Engine``.
    """
    defaults: dict[str, Any] = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "echo": False,
        # Both PyMySQL and psycopg accept connect_timeout
        "connect_args": {"connect_timeout": connect_timeout},
    }
    # Caller kwargs override defaults
    merged = {**defaults, **kwargs}

    return create_engine(database_url, **merged)


class SqlAlchemyTransaction:
    """``Transaction`` over one checked-out SQLAlchemy connection."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        result = self._conn.execute(text(sql), params or {})
        return [dict(row) for row in result.mappings()]

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        result = self._conn.execute(text(sql), params or {})
        return result.rowcount


class SqlAlchemyAdapter:
    """SQLAlchemy implementation of the ``DatabaseClient`` protocol.

    Args:
        engine: A configured engine, usually from ``create_engine_pooled``.

    Example:
        adapter = SqlAlchemyAdapter(create_engine_pooled(url))
        with adapter.transaction() as tx:
            tx.execute("UPDATE wp_users SET user_email = :e WHERE ID = :id", {...})
        adapter.close()
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def list_tables(self) -> list[str]:
        """List tables in the default schema via the dialect's inspector.

        This issues ``SHOW TABLES`` on MySQL and a ``pg_catalog`` query on
        PostgreSQL.
        """
        return list(inspect(self._engine).get_table_names())

    def query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run a read-only statement on a pooled connection."""
        with self._engine.connect() as conn:
            result = conn.execute(text(sql), params or {})
            return [dict(row) for row in result.mappings()]

    @contextmanager
    def transaction(self) -> Iterator[SqlAlchemyTransaction]:
        """Uses ``engine.begin()`` for commit on success, rollback on error."""
        with self._engine.begin() as conn:
            yield SqlAlchemyTransaction(conn)

    def test_connection(self) -> bool:
        """Runs ``SELECT 1`` to verify the connection is alive.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If the connection fails.
        """
        with self._engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine is not None:
            self._engine.dispose()
