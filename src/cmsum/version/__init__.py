"""CMS version resolution.

Usage:
    from cmsum.version import resolve_version, VersionDescriptor
"""

from cmsum.version.models import VersionDescriptor, VersionLayout, parse_major
from cmsum.version.resolver import (
    VERSION_SOURCES,
    VersionSource,
    parse_version_text,
    resolve_from_sources,
    resolve_version,
)

__all__ = [
    "resolve_version",
    "resolve_from_sources",
    "parse_version_text",
    "parse_major",
    "VersionSource",
    "VERSION_SOURCES",
    "VersionDescriptor",
    "VersionLayout",
]
