"""Database adapters package.

Provides the ``DatabaseClient`` and ``Transaction`` Protocols and the
SQLAlchemy-backed implementation used for MySQL and PostgreSQL.

Usage:
    from cmsum.adapters import DatabaseClient, SqlAlchemyAdapter
"""

from cmsum.adapters.base import DatabaseClient, Transaction
from cmsum.adapters.sql import SqlAlchemyAdapter, SqlAlchemyTransaction, create_engine_pooled

__all__ = [
    "DatabaseClient",
    "Transaction",
    "SqlAlchemyAdapter",
    "SqlAlchemyTransaction",
    "create_engine_pooled",
]
