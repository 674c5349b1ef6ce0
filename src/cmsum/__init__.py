"""cmsum: CMS database introspection and user management.

Reads WordPress and Joomla configuration files, connects to their MySQL or
PostgreSQL databases, works out which table prefixes are real
installations, resolves the installed version, and lists or edits users
with version-appropriate password hashes.

Usage:
    from cmsum import read_config, connect, resolve_prefixes, UserRepository
    from cmsum import CmsFamily, UserChanges, hash_password, resolve_version
"""

__version__ = "0.1.0"

# Adapters
from cmsum.adapters.base import DatabaseClient, Transaction
from cmsum.adapters.sql import SqlAlchemyAdapter

# Config
from cmsum.config.extractor import detect_installations, extract_config, read_config
from cmsum.config.loader import load_settings
from cmsum.config.models import (
    CmsFamily,
    ConnectionDescriptor,
    DbFamily,
    ExtractedConfig,
    ToolSettings,
)

# Credentials
from cmsum.credentials import HashAlgorithm, HashResult, hash_password, verify_password

# Errors
from cmsum.errors import (
    CmsumError,
    ConfigReadError,
    DatabaseConnectionError,
    PrefixResolutionEmptyError,
    UnsupportedFamilyError,
    UpdateAffectedRowMismatchError,
    UserNotFoundError,
    VersionUnresolvableError,
)

# Factory
from cmsum.factory import connect

# Schema
from cmsum.schema.models import CompanionKind, PrefixResolution, ResolvedInstallation
from cmsum.schema.prefixes import resolve_prefixes

# Users
from cmsum.users.models import UserChanges, UserRecord
from cmsum.users.repository import UserRepository

# Version
from cmsum.version.models import VersionDescriptor
from cmsum.version.resolver import resolve_version

__all__ = [
    # Adapters
    "DatabaseClient",
    "Transaction",
    "SqlAlchemyAdapter",
    # Config
    "detect_installations",
    "extract_config",
    "read_config",
    "load_settings",
    "CmsFamily",
    "ConnectionDescriptor",
    "DbFamily",
    "ExtractedConfig",
    "ToolSettings",
    # Credentials
    "HashAlgorithm",
    "HashResult",
    "hash_password",
    "verify_password",
    # Errors
    "CmsumError",
    "ConfigReadError",
    "DatabaseConnectionError",
    "PrefixResolutionEmptyError",
    "UnsupportedFamilyError",
    "UpdateAffectedRowMismatchError",
    "UserNotFoundError",
    "VersionUnresolvableError",
    # Factory
    "connect",
    # Schema
    "CompanionKind",
    "PrefixResolution",
    "ResolvedInstallation",
    "resolve_prefixes",
    # Users
    "UserChanges",
    "UserRecord",
    "UserRepository",
    # Version
    "VersionDescriptor",
    "resolve_version",
]
