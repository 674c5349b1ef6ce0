"""Database client protocol definitions.

Defines the ``DatabaseClient`` and ``Transaction`` Protocols the resolver
and repository code is written against. All methods are synchronous;
one invocation performs one resolution-and-action sequence.

Usage:
    from cmsum.adapters.base import DatabaseClient

    def count_users(client: DatabaseClient, prefix: str) -> int:
        rows = client.query(f"SELECT COUNT(*) AS n FROM {prefix}_users")
        return rows[0]["n"]
"""

from contextlib import AbstractContextManager
from typing import Any, Protocol


class Transaction(Protocol):
    """A unit of work: every statement commits together or not at all."""

    def query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run a SELECT inside the transaction and return rows as dicts."""
        ...

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Run a write statement and return the affected-row count.

        Example:
            affected = tx.execute(
                "UPDATE jos_users SET email = :email WHERE id = :id",
                {"email": "a@example.com", "id": 42},
            )
        """
        ...


class DatabaseClient(Protocol):
    """Database collaborator interface.

    This Protocol ensures the core logic works the same over MySQL,
    PostgreSQL, or the SQLite engines used in tests.
    """

    def list_tables(self) -> list[str]:
        """Return every table name visible in the connected database."""
        ...

    def query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run a SELECT with named parameters and return rows as dicts.

        Example:
            rows = client.query(
                "SELECT id, username FROM jos_users WHERE username = :username",
                {"username": "admin"},
            )
        """
        ...

    def transaction(self) -> AbstractContextManager[Transaction]:
        """Open a transaction; commits on clean exit, rolls back on error.

        Example:
            with client.transaction() as tx:
                tx.execute("UPDATE ...", {...})
        """
        ...

    def close(self) -> None:
        """Close the connection pool and release resources."""
        ...
