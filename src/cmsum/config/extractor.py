"""Extract database connection details from CMS configuration files.

Each CMS family is described by an ordered table of ``FieldExtractor``
entries. Every entry is independent and optional: a key that is missing
from the text leaves the descriptor field at its family default. Adding a
CMS family is a data change here, not new control flow.

Usage:
    from cmsum.config.extractor import read_config
    from cmsum.config.models import CmsFamily

    config = read_config(Path("/var/www/site/wp-config.php"), CmsFamily.WORDPRESS)
    config.connection.host, config.hinted_prefix
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from cmsum.config.models import CmsFamily, ConnectionDescriptor, DbFamily, ExtractedConfig
from cmsum.errors import ConfigReadError, UnsupportedFamilyError
from cmsum.parsing import DefineMatcher, KeyValueMatcher, PropertyMatcher, VariableMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldExtractor:
    """Pull one logical field out of a config text with one matcher."""

    field: str  # database | user | password | host | type | prefix
    matcher: KeyValueMatcher
    key: str

    def extract(self, text: str) -> str | None:
        return self.matcher.match(text, self.key)


_define = DefineMatcher()
_property = PropertyMatcher()
_variable = VariableMatcher()

EXTRACTORS: dict[CmsFamily, tuple[FieldExtractor, ...]] = {
    CmsFamily.WORDPRESS: (
        FieldExtractor("database", _define, "DB_NAME"),
        FieldExtractor("user", _define, "DB_USER"),
        FieldExtractor("password", _define, "DB_PASSWORD"),
        FieldExtractor("host", _define, "DB_HOST"),
        FieldExtractor("prefix", _variable, "table_prefix"),
    ),
    CmsFamily.JOOMLA: (
        FieldExtractor("database", _property, "db"),
        FieldExtractor("user", _property, "user"),
        FieldExtractor("password", _property, "password"),
        FieldExtractor("host", _property, "host"),
        FieldExtractor("type", _property, "dbtype"),
        FieldExtractor("prefix", _property, "dbprefix"),
    ),
}

# Driver tokens as written by the CMS, mapped to the wire-compatible family.
DRIVER_ALIASES: dict[str, DbFamily] = {
    "mysql": DbFamily.MYSQL,
    "mysqli": DbFamily.MYSQL,
    "pdomysql": DbFamily.MYSQL,
    "mariadb": DbFamily.MYSQL,
    "postgres": DbFamily.POSTGRES,
    "postgresql": DbFamily.POSTGRES,
    "pgsql": DbFamily.POSTGRES,
}


def normalize_family(token: str) -> DbFamily:
    """Map a CMS driver token to a ``DbFamily``.

    Raises:
        UnsupportedFamilyError: If the token names no supported driver.
    """
    family = DRIVER_ALIASES.get(token.strip().lower())
    if family is None:
        raise UnsupportedFamilyError(token)
    return family


def split_host_port(value: str, default_port: int) -> tuple[str, int]:
    """Split ``host[:port]`` (or ``[v6]:port``) into host and port.

    A port that is not a number (e.g. a socket path such as
    ``localhost:/run/mysqld.sock``) falls back to ``default_port``.

    Examples:
        >>> split_host_port("db.example.com:3307", 3306)
        ('db.example.com', 3307)
        >>> split_host_port("localhost:/tmp/mysql.sock", 3306)
        ('localhost', 3306)
        >>> split_host_port("[::1]:5433", 5432)
        ('::1', 5433)
    """
    value = value.strip()
    if value.startswith("["):
        host, _, rest = value[1:].partition("]")
        port_text = rest[1:] if rest.startswith(":") else ""
    elif value.count(":") == 1:
        host, _, port_text = value.partition(":")
    else:
        # Bare hostname, or an unbracketed IPv6 address
        return value, default_port

    if port_text.isdigit() and 0 < int(port_text) < 65536:
        return host, int(port_text)
    if port_text:
        logger.debug("Ignoring malformed port %r, using %d", port_text, default_port)
    return host, default_port


def extract_config(text: str, cms: CmsFamily, source: Path | None = None) -> ExtractedConfig:
    """Parse a configuration text for the given CMS family.

    Text with no recognized keys yields a descriptor of defaults; whether
    it is usable is decided by the connection attempt.

    Raises:
        UnsupportedFamilyError: If the config names an unknown driver type.
    """
    found: dict[str, str] = {}
    for extractor in EXTRACTORS[cms]:
        value = extractor.extract(text)
        if value is not None:
            found[extractor.field] = value

    family = normalize_family(found["type"]) if "type" in found else DbFamily.MYSQL

    fields: dict[str, object] = {"family": family}
    for name in ("database", "user", "password"):
        if name in found:
            fields[name] = found[name]
    if found.get("host"):
        fields["host"], fields["port"] = split_host_port(found["host"], family.default_port)

    prefix = found.get("prefix", "").rstrip("_") or None

    logger.debug(
        "Extracted %s config: keys=%s prefix=%s",
        cms.value,
        sorted(k for k in found if k != "password"),
        prefix,
    )

    return ExtractedConfig(
        cms=cms,
        connection=ConnectionDescriptor(**fields),
        hinted_prefix=prefix,
        source=source,
    )


def config_path(root: Path, cms: CmsFamily) -> Path:
    """Location of the CMS configuration file under an installation root."""
    return Path(root) / cms.config_filename


def read_config(path: Path, cms: CmsFamily) -> ExtractedConfig:
    """Read and parse a configuration file.

    Raises:
        ConfigReadError: If the file does not exist or cannot be read.
        UnsupportedFamilyError: If the config names an unknown driver type.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ConfigReadError(f"Cannot read {cms.value} config {path}: {e}") from e
    return extract_config(text, cms, source=path)


def detect_installations(root: Path) -> list[CmsFamily]:
    """CMS families whose configuration file exists under ``root``."""
    return [cms for cms in CmsFamily if config_path(root, cms).is_file()]
