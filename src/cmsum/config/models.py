"""Pydantic models for connection and tool configuration."""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.engine import URL


# ============================================================================
# Families
# ============================================================================


class DbFamily(str, Enum):
    """Supported database driver families."""

    MYSQL = "mysql"
    POSTGRES = "postgres"

    @property
    def default_port(self) -> int:
        return _DEFAULT_PORTS[self]

    @property
    def drivername(self) -> str:
        """SQLAlchemy dialect+driver name for this family."""
        return _DRIVERNAMES[self]


_DEFAULT_PORTS = {DbFamily.MYSQL: 3306, DbFamily.POSTGRES: 5432}
_DRIVERNAMES = {DbFamily.MYSQL: "mysql+pymysql", DbFamily.POSTGRES: "postgresql+psycopg"}


class CmsFamily(str, Enum):
    """Supported CMS table-shape dialects.

    WordPress is the "A" shape (users + posts), Joomla the "B" shape
    (users + user group tables).
    """

    WORDPRESS = "wordpress"
    JOOMLA = "joomla"

    @property
    def config_filename(self) -> str:
        return _CONFIG_FILENAMES[self]


_CONFIG_FILENAMES = {
    CmsFamily.WORDPRESS: "wp-config.php",
    CmsFamily.JOOMLA: "configuration.php",
}


# ============================================================================
# Connection Models
# ============================================================================


class ConnectionDescriptor(BaseModel):
    """Everything needed to open a database connection."""

    model_config = ConfigDict(frozen=True)

    family: DbFamily = DbFamily.MYSQL
    host: str = "localhost"
    port: int  # filled with the family default when absent
    user: str = ""
    password: str = Field(default="", repr=False)
    database: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_port(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("port") is None:
            family = DbFamily(data.get("family", DbFamily.MYSQL))
            data = {**data, "port": family.default_port}
        return data

    @property
    def url(self) -> URL:
        """SQLAlchemy URL; credentials are escaped by ``URL.create``."""
        return URL.create(
            drivername=self.family.drivername,
            username=self.user or None,
            password=self.password or None,
            host=self.host or None,
            port=self.port,
            database=self.database or None,
        )


class ExtractedConfig(BaseModel):
    """Result of parsing a CMS configuration file."""

    model_config = ConfigDict(frozen=True)

    cms: CmsFamily
    connection: ConnectionDescriptor
    hinted_prefix: str | None = None
    source: Path | None = None


# ============================================================================
# Tool Settings
# ============================================================================


class ToolSettings(BaseModel):
    """cmsum's own settings from ``cmsum.toml``."""

    connect_timeout: int = 10
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle: int = 300
    echo: bool = False
    log_level: str = "WARNING"
