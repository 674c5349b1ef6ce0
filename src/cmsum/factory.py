"""Database client factory.

Turns an extracted ``ConnectionDescriptor`` into a live, pinged
``SqlAlchemyAdapter``. Connection failures are surfaced verbatim as
``DatabaseConnectionError``; nothing here retries.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from cmsum.adapters.sql import SqlAlchemyAdapter, create_engine_pooled
from cmsum.config.models import ConnectionDescriptor, ToolSettings
from cmsum.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)


def connect(
    descriptor: ConnectionDescriptor,
    settings: ToolSettings | None = None,
) -> SqlAlchemyAdapter:
    """Connect to the database described by ``descriptor``.

    Args:
        descriptor: Connection details extracted from the CMS config.
        settings: Pool and timeout settings (default: ``ToolSettings()``).

    Returns:
        An adapter whose connection has been verified with ``SELECT 1``.
        The caller owns it and must ``close()`` it.

    Raises:
        DatabaseConnectionError: If the driver cannot connect or authenticate.

    Example:
        >>> adapter = connect(config.connection)
        >>> try:
        ...     tables = adapter.list_tables()
        ... finally:
        ...     adapter.close()
    """
    settings = settings or ToolSettings()

    logger.info(
        "Connecting to %s database %r at %s:%s as %r",
        descriptor.family.value,
        descriptor.database,
        descriptor.host,
        descriptor.port,
        descriptor.user,
    )

    try:
        engine = create_engine_pooled(
            descriptor.url,
            connect_timeout=settings.connect_timeout,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_recycle=settings.pool_recycle,
            echo=settings.echo,
        )
    except (SQLAlchemyError, ImportError) as e:
        # ImportError: the driver package for this family is not installed
        raise DatabaseConnectionError(f"Failed to create database engine: {e}") from e

    adapter = SqlAlchemyAdapter(engine)
    try:
        adapter.test_connection()
    except SQLAlchemyError as e:
        adapter.close()
        raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

    return adapter
